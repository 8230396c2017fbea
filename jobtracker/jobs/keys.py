"""Tracker key derivation.

The default key is deliberately minimal: the snake_cased job name followed by
``str()`` of every argument, joined with ``/``. Jobs receiving anything other
than simple values should override ``key`` on the job class.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from jobtracker.jobs.base import TrackableJob

_ACRONYM_BOUNDARY = re.compile(r"([A-Z\d]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


def underscore(name: str) -> str:
    """``Billing.InvoiceJob`` -> ``billing/invoice_job``."""
    word = name.replace("::", "/").replace(".", "/")
    word = _ACRONYM_BOUNDARY.sub(r"\1_\2", word)
    word = _WORD_BOUNDARY.sub(r"\1_\2", word)
    return word.replace("-", "_").lower()


def default_key(job_name: str, arguments: Iterable[Any]) -> str:
    return "/".join([underscore(job_name)] + [str(argument) for argument in arguments])


def derive_key(job_cls: type[TrackableJob], arguments: Iterable[Any]) -> str:
    """Key for ``arguments`` using the job class override when it defines one."""
    key = job_cls.key(*tuple(arguments))
    if not isinstance(key, str):
        raise TypeError(f"{job_cls.__name__}.key must return str, got {type(key).__name__}")
    return key


__all__ = ["underscore", "default_key", "derive_key"]
