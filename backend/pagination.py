from collections import OrderedDict

from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response


class TotalLimitOffsetPagination(LimitOffsetPagination):
    """
    limit/offset pagination answering with the total of the filtered queryset.

    Response shape: {"results": [...], "total": N, "limit": L, "offset": O}
    """

    default_limit = 20
    max_limit = 100

    def get_paginated_response(self, data):
        return Response(
            OrderedDict(
                [
                    ("results", data),
                    ("total", self.count),
                    ("limit", self.limit),
                    ("offset", self.offset),
                ]
            )
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "required": ["results", "total"],
            "properties": {
                "results": schema,
                "total": {"type": "integer"},
                "limit": {"type": "integer"},
                "offset": {"type": "integer"},
            },
        }
