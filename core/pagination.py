"""
Pagination styles used by the web client.

Marketplace and user lists page with ?page=&limit=, dashboard tables with
?page=&pageSize=. Both wrap results with a pagination block.
"""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PageLimitPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_paginated_response(self, data):
        return Response({
            'results': data,
            'pagination': {
                'page': self.page.number,
                'limit': self.page.paginator.per_page,
                'total': self.page.paginator.count,
                'totalPages': self.page.paginator.num_pages,
            },
        })


class DashboardPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = 'pageSize'
    max_page_size = 100

    def get_paginated_response(self, data):
        return Response({
            'results': data,
            'pagination': {
                'page': self.page.number,
                'pageSize': self.page.paginator.per_page,
                'total': self.page.paginator.count,
                'pages': self.page.paginator.num_pages,
            },
        })
