# purchases/api/views.py

"""
BLOOD PURCHASE API

Thin HTTP layer:
- resolve the caller's Principal
- parse input (serializers / FilterSet)
- call the service
- serialize the result

Errors are never built here; service exceptions propagate to
backend.exception_handler.
"""

from drf_spectacular.utils import OpenApiParameter, OpenApiTypes, extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.principal import resolve_principal
from permissions.roles import (
    CAP_PURCHASES_CANCEL,
    CAP_PURCHASES_CREATE,
    CAP_PURCHASES_STATS,
    CAP_PURCHASES_VIEW,
    HasCapability,
)
from purchases.api.filters import requested_filters
from purchases.api.pagination import PurchasePagination
from purchases.api.serializers import (
    BloodPurchaseSerializer,
    CancelSerializer,
    PurchaseCreateSerializer,
    StatusUpdateSerializer,
)
from purchases.services.purchase_service import (
    cancel_purchase,
    create_purchase,
    get_purchase,
    list_my_purchases,
    list_purchases,
    transition_purchase,
)
from purchases.services.stats_service import get_stats

FILTER_PARAMETERS = [
    OpenApiParameter("status", OpenApiTypes.STR, description="Order status or 'all'"),
    OpenApiParameter("blood_type", OpenApiTypes.STR, description="Blood type or 'all'"),
    OpenApiParameter("urgency", OpenApiTypes.STR, description="emergency / urgent / normal or 'all'"),
    OpenApiParameter("source_type", OpenApiTypes.STR, description="organization / hospital or 'all'"),
    OpenApiParameter("source_id", OpenApiTypes.INT, description="Applied together with source_type"),
    OpenApiParameter("date_from", OpenApiTypes.DATE, description="Created on or after (YYYY-MM-DD)"),
    OpenApiParameter("date_to", OpenApiTypes.DATE, description="Created on or before (YYYY-MM-DD)"),
]


class PurchaseListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = {
        "GET": CAP_PURCHASES_VIEW,
        "POST": CAP_PURCHASES_CREATE,
    }
    serializer_class = BloodPurchaseSerializer
    pagination_class = PurchasePagination

    @extend_schema(
        tags=["purchases"],
        parameters=FILTER_PARAMETERS,
        responses=BloodPurchaseSerializer(many=True),
        description="Scoped purchase listing, newest first",
    )
    def get(self, request):
        principal = resolve_principal(request.user)
        qs = list_purchases(principal=principal, requested=requested_filters(request.query_params))

        page = self.paginate_queryset(qs)
        return self.get_paginated_response(BloodPurchaseSerializer(page, many=True).data)

    @extend_schema(
        tags=["purchases"],
        request=PurchaseCreateSerializer,
        responses={201: BloodPurchaseSerializer},
        description="Submit a blood purchase request",
    )
    def post(self, request):
        s = PurchaseCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        principal = resolve_principal(request.user)
        purchase = create_purchase(draft=s.validated_data, principal=principal)

        return Response(
            BloodPurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED
        )


class MyPurchasesView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_PURCHASES_VIEW
    serializer_class = BloodPurchaseSerializer
    pagination_class = PurchasePagination

    @extend_schema(tags=["purchases"], responses=BloodPurchaseSerializer(many=True))
    def get(self, request):
        principal = resolve_principal(request.user)
        page = self.paginate_queryset(list_my_purchases(principal=principal))
        return self.get_paginated_response(BloodPurchaseSerializer(page, many=True).data)


class PurchaseDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = {
        "GET": CAP_PURCHASES_VIEW,
        "DELETE": CAP_PURCHASES_CANCEL,
    }
    serializer_class = BloodPurchaseSerializer

    @extend_schema(tags=["purchases"], responses=BloodPurchaseSerializer)
    def get(self, request, purchase_id):
        principal = resolve_principal(request.user)
        purchase = get_purchase(purchase_id=purchase_id, principal=principal)
        return Response(BloodPurchaseSerializer(purchase).data)

    @extend_schema(
        tags=["purchases"],
        responses=BloodPurchaseSerializer,
        description="Cancel the purchase (same as POST .../cancel/)",
    )
    def delete(self, request, purchase_id):
        principal = resolve_principal(request.user)
        purchase = cancel_purchase(purchase_id=purchase_id, principal=principal)
        return Response(BloodPurchaseSerializer(purchase).data)


class PurchaseStatusView(GenericAPIView):
    # Any caller who can see orders may try; the service answers NOT FOUND
    # for out-of-scope orders before it answers FORBIDDEN for plain users.
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_PURCHASES_VIEW
    serializer_class = StatusUpdateSerializer

    @extend_schema(
        tags=["purchases"],
        request=StatusUpdateSerializer,
        responses=BloodPurchaseSerializer,
        description="Advance the order one step along its lifecycle (administrators)",
    )
    def patch(self, request, purchase_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        principal = resolve_principal(request.user)
        purchase = transition_purchase(
            purchase_id=purchase_id,
            new_status=data["status"],
            principal=principal,
            note=data.get("note") or None,
            admin_notes=data.get("admin_notes") or None,
            pickup_details=dict(data["pickup_details"]) if data.get("pickup_details") else None,
        )
        return Response(BloodPurchaseSerializer(purchase).data)


class PurchaseCancelView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_PURCHASES_CANCEL
    serializer_class = CancelSerializer

    @extend_schema(
        tags=["purchases"],
        request=CancelSerializer,
        responses=BloodPurchaseSerializer,
    )
    def post(self, request, purchase_id):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        principal = resolve_principal(request.user)
        purchase = cancel_purchase(
            purchase_id=purchase_id,
            principal=principal,
            reason=s.validated_data.get("reason") or None,
        )
        return Response(BloodPurchaseSerializer(purchase).data)


class PurchaseStatsView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_PURCHASES_STATS

    @extend_schema(
        tags=["purchases"],
        parameters=FILTER_PARAMETERS,
        responses={200: OpenApiTypes.OBJECT},
        description="Dashboard numbers over the caller's scope",
    )
    def get(self, request):
        principal = resolve_principal(request.user)
        stats = get_stats(principal=principal, requested=requested_filters(request.query_params))
        return Response(stats)
