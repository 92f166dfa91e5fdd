from rest_framework.response import Response

class PaginationMixin:
    """Paginate a queryset when the view has a paginator, otherwise return the full list."""

    def paginate_and_respond(self, queryset, serializer_cls, many=True, context=None):
        page = self.paginate_queryset(queryset)
        serializer = serializer_cls(page if page is not None else queryset, many=many, context=context or {})
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)
