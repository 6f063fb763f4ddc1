from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response


class EnvelopeLimitOffsetPagination(LimitOffsetPagination):
    """LimitOffset paging wrapped in the {"success": true, "data": [...]} envelope."""
    default_limit = 20
    max_limit = 100
    limit_query_param = "limit"
    offset_query_param = "offset"

    def get_paginated_response(self, data):
        return Response({
            "success": True,
            "count": self.count,
            "next": self.get_next_link(),
            "previous": self.get_previous_link(),
            "data": data,
        })

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "success": {"type": "boolean", "example": True},
                "count": {"type": "integer", "example": 123},
                "next": {"type": "string", "nullable": True, "format": "uri"},
                "previous": {"type": "string", "nullable": True, "format": "uri"},
                "data": schema,
            },
        }
