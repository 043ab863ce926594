# api_utils.py
import json
from typing import Any, Callable, Iterable
from fastapi import Query
from fastapi.responses import JSONResponse
from tortoise.queryset import QuerySet

FilterFn = Callable[[QuerySet, Any], QuerySet]


# ---------- React-Admin param parsing ----------
def parse_range(range_param: str) -> tuple[int, int]:
    """'[start,end]' (inclusive) -> (skip, limit); malformed input means the first page."""
    try:
        start, end = json.loads(range_param)
    except Exception:
        start, end = 0, 9
    skip = max(int(start), 0)
    return skip, max(int(end) - skip + 1, 1)


def parse_sort(sort_param: str, allowed_fields: Iterable[str], default: str) -> str:
    allowed = set(allowed_fields) | {default}
    try:
        field, order = json.loads(sort_param)
    except Exception:
        field, order = (default, "DESC")
    field = field if field in allowed else default
    return f"-{field}" if str(order).upper() == "DESC" else field


def parse_filter(filter_param: str | None) -> dict:
    try:
        parsed = json.loads(filter_param or "{}")
    except Exception:
        return {}
    return parsed if isinstance(parsed, dict) else {}


# ---------- list endpoint params ----------
class RAListParams:
    """range / sort / filter query params of a react-admin list call (newest first by default)."""

    def __init__(
        self,
        range: str = Query("[0,9]"),
        sort: str = Query('["created_at","DESC"]'),
        filter: str = Query("{}"),
    ):
        self.skip, self.limit = parse_range(range)
        self.sort = sort
        self.filters = parse_filter(filter)

    def order(self, allowed_fields: Iterable[str], default: str = "created_at") -> str:
        return parse_sort(self.sort, allowed_fields, default)

    def apply_filters(self, qs: QuerySet, fmap: dict[str, FilterFn]) -> QuerySet:
        """Only keys present in `fmap` are honoured; unknown or null filters are ignored."""
        for key, fn in fmap.items():
            if self.filters.get(key) is not None:
                qs = fn(qs, self.filters[key])
        return qs


async def paginate_and_respond(
    qs: QuerySet,
    params: RAListParams,
    order: str,
    to_pydantic: Callable[[Any], Any],
) -> JSONResponse:
    total = await qs.count()
    items = await qs.order_by(order).offset(params.skip).limit(params.limit)
    end_real = params.skip + max(len(items) - 1, 0)

    # pydantic's JSON mode handles the UUID / datetime columns
    content = [to_pydantic(it).model_dump(mode="json") for it in items]
    return JSONResponse(
        status_code=206,
        content=content,
        headers={"Content-Range": f"items {params.skip}-{end_real}/{total}", "X-Total-Count": str(total)},
    )
