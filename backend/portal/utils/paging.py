"""Utilities for parsing pagination query parameters."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping


class PagingParamError(ValueError):
    """Raised when pagination query parameters are invalid."""


@dataclass
class PagingParams:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _parse_int_arg(
    raw_value: str | None,
    *,
    name: str,
    default: int,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if raw_value in (None, ""):
        value = default
    else:
        try:
            value = int(raw_value)
        except (TypeError, ValueError):
            raise PagingParamError(f"{name} must be an integer.") from None

    if minimum is not None and value < minimum:
        raise PagingParamError(f"{name} must be ≥ {minimum}.")
    if maximum is not None and value > maximum:
        raise PagingParamError(f"{name} must be ≤ {maximum}.")

    return value


def parse_paging_params(
    args: Mapping[str, str],
    *,
    default_page: int = 1,
    default_limit: int = 20,
    max_limit: int = 100,
) -> PagingParams:
    """Parse ``page`` and ``limit`` from a request args mapping."""

    page = _parse_int_arg(
        args.get("page"),
        name="page",
        default=default_page,
        minimum=1,
    )

    limit = _parse_int_arg(
        args.get("limit"),
        name="limit",
        default=default_limit,
        minimum=1,
        maximum=max_limit,
    )

    return PagingParams(page=page, limit=limit)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def pagination_payload(paging: PagingParams, total: int) -> Dict[str, Any]:
    return {
        "page": paging.page,
        "limit": paging.limit,
        "total": total,
        "pages": page_count(total, paging.limit),
    }


__all__ = [
    "PagingParamError",
    "PagingParams",
    "parse_paging_params",
    "page_count",
    "pagination_payload",
]
