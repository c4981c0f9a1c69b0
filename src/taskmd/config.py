#!/usr/bin/env python3
"""
Runtime settings.

Settings come from keyword arguments, from `TASKMD_*` environment variables
via `Settings.from_env()`, and finally from CLI flags that override both.
"""

import logging
import os
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

log = logging.getLogger(__name__)

ENV_PREFIX = 'TASKMD_'


class Settings(BaseModel):
    indent_size: int = Field(default=2, ge=1)
    id_length: int = Field(default=8, ge=4, le=40)
    section_heading: str = '## TODO'
    long_value_threshold: int = Field(default=25, ge=1)
    wrap_width: Optional[int] = Field(default=None, ge=10)
    log_level: str = 'WARNING'

    @field_validator('section_heading')
    @classmethod
    def _heading_is_markdown(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith('#'):
            raise ValueError('section heading must be a markdown heading, e.g. "## TODO"')
        return value

    @field_validator('log_level')
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f'unknown log level: {value}')
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'Settings':
        """
        Build settings from TASKMD_* variables.

        Unset or empty variables fall back to defaults; `overrides` that are
        not None win over the environment.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, object] = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper(), '')
            if raw != '':
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        settings = cls(**values)
        log.debug("Loaded settings: %s", settings)
        return settings
