# purchases/api/pagination.py

from django.conf import settings
from rest_framework.pagination import PageNumberPagination


class PurchasePagination(PageNumberPagination):
    page_size = settings.PURCHASE_LIST_LIMIT
    page_size_query_param = "page_size"
    max_page_size = settings.PURCHASE_LIST_MAX_LIMIT
