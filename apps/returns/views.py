"""
Views for returns and exchanges.

All endpoints are JSON. Domain errors from the returns package are caught
here and turned into responses:

- ReturnValidationError -> 400 {"errors": {field: [messages]}}
- NotFoundError -> 404
- NoValidItemsError, SaleNotEligibleError, InvalidTransitionError -> 400
- AuthorizationError -> 403
- ReconciliationFailed -> 409 {"detail", "failures"}
"""

import logging

from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from apps.core.permissions import CanApproveReturns, HasStoreAccess
from apps.inventory.serializers import ProductSerializer
from apps.inventory.services import InventoryService
from apps.sales.serializers import SaleListSerializer

from .drafts import ReturnDraft, normalize_choice
from .exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    NoValidItemsError,
    NotFoundError,
    ReconciliationFailed,
    ReturnValidationError,
    SaleNotEligibleError,
    SaleNotFoundError,
)
from .models import Return
from .repository import ReturnRepository
from .resolver import SaleResolver
from .serializers import (
    ResolvedSaleSerializer,
    ReturnDecisionSerializer,
    ReturnDetailSerializer,
    ReturnListSerializer,
)
from .services import ReturnApprovalService

logger = logging.getLogger(__name__)


def _query_filters(request):
    """Read list filters from the query string (camelCase or snake_case)."""
    params = request.query_params

    def get(*names):
        for name in names:
            value = params.get(name)
            if value:
                return value.strip()
        return None

    status_value = get("status")
    reason = get("reason")
    return {
        "status": normalize_choice(status_value, Return.STATUS_CHOICES) or status_value,
        "reason": normalize_choice(reason, Return.REASON_CHOICES) or reason,
        "start_date": get("startDate", "start_date", "date_from"),
        "end_date": get("endDate", "end_date", "date_to"),
        "search": get("search"),
    }


def _stats_data(stats):
    """Render money as strings, the way serializers render DecimalFields."""
    return {
        "total_returns": stats["total_returns"],
        "by_status": {
            key: {"count": value["count"], "total_amount": str(value["total_amount"])}
            for key, value in stats["by_status"].items()
        },
        "by_reason": stats["by_reason"],
        "total_amount_returned": str(stats["total_amount_returned"]),
        "top_returned_products": [
            {
                "product_id": str(row["product_id"]) if row["product_id"] else None,
                "product_name": row["product_name"],
                "quantity": row["quantity"],
                "returns": row["returns"],
            }
            for row in stats["top_returned_products"]
        ],
    }


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, HasStoreAccess])
def return_list_create(request):
    """
    List returns or submit a new one.

    GET query parameters:
    - status: PENDING|APPROVED|REJECTED|COMPLETED
    - reason: DEFECTIVE|INCORRECT|NOT_NEEDED|EXCHANGE|OTHER
    - search: Return number, invoice number, customer name, product name or notes
    - startDate / endDate: Inclusive date range (YYYY-MM-DD)

    POST request body:
    {
        "sale_id": "uuid or invoice number",
        "items": [{"product_id": "uuid", "quantity": 1, "is_defective": false}],
        "reason": "DEFECTIVE|INCORRECT|NOT_NEEDED|EXCHANGE|OTHER",
        "refund_method": "CASH|CARD|STORE_CREDIT" (not for exchanges),
        "exchange_items": [{"product_id": "uuid", "quantity": 1, "price": "10.00"}] (exchanges only),
        "notes": "" (optional)
    }
    """
    if request.method == "POST":
        return _create_return(request)

    try:
        queryset = ReturnRepository.list(**_query_filters(request))
    except ReturnValidationError as e:
        return Response({"errors": e.errors}, status=status.HTTP_400_BAD_REQUEST)

    paginator = PageNumberPagination()
    page = paginator.paginate_queryset(queryset, request)
    response = paginator.get_paginated_response(ReturnListSerializer(page, many=True).data)
    response.data["stats"] = _stats_data(ReturnRepository.stats(queryset))
    return response


def _create_return(request):
    try:
        draft = ReturnDraft.from_payload(request.data)
        return_request = draft.submit(request.user)
    except ReturnValidationError as e:
        return Response({"errors": e.errors}, status=status.HTTP_400_BAD_REQUEST)
    except NotFoundError as e:
        return Response({"detail": str(e)}, status=status.HTTP_404_NOT_FOUND)
    except (NoValidItemsError, SaleNotEligibleError) as e:
        return Response(
            {"detail": str(e), "errors": {"sale": [str(e)]}},
            status=status.HTTP_400_BAD_REQUEST,
        )
    except Exception as e:
        logger.error(f"Return creation failed: {str(e)}", exc_info=True)
        raise

    return_request = ReturnRepository.get(return_request.pk)
    return Response(ReturnDetailSerializer(return_request).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasStoreAccess])
def return_detail(request, return_id):
    """
    API endpoint for retrieving a single return with its settlement.
    """
    try:
        return_request = ReturnRepository.get(return_id)
    except NotFoundError:
        return Response({"detail": "Return not found."}, status=status.HTTP_404_NOT_FOUND)

    return Response(ReturnDetailSerializer(return_request).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasStoreAccess])
def return_stats(request):
    """
    Aggregate return statistics. Accepts the same filters as the list endpoint.
    """
    try:
        queryset = ReturnRepository.list(**_query_filters(request))
    except ReturnValidationError as e:
        return Response({"errors": e.errors}, status=status.HTTP_400_BAD_REQUEST)

    return Response(_stats_data(ReturnRepository.stats(queryset)))


def _decide(request, return_id, action):
    serializer = ReturnDecisionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({"errors": serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    notes = serializer.validated_data["notes"]

    try:
        if action == "approve":
            outcome = ReturnApprovalService.approve(return_id, request.user, notes)
        else:
            outcome = ReturnApprovalService.reject(return_id, request.user, notes)
    except AuthorizationError as e:
        return Response({"detail": str(e)}, status=status.HTTP_403_FORBIDDEN)
    except NotFoundError:
        return Response({"detail": "Return not found."}, status=status.HTTP_404_NOT_FOUND)
    except ReturnValidationError as e:
        return Response({"errors": e.errors}, status=status.HTTP_400_BAD_REQUEST)
    except InvalidTransitionError as e:
        return Response(
            {"detail": f"Cannot {action} this return. Current status: {e.current}"},
            status=status.HTTP_400_BAD_REQUEST,
        )
    except ReconciliationFailed as e:
        return Response(
            {"detail": str(e), "failures": e.failures},
            status=status.HTTP_409_CONFLICT,
        )
    except Exception as e:
        logger.error(f"Return {action} failed for {return_id}: {str(e)}", exc_info=True)
        raise

    return_request = ReturnRepository.get(outcome.instance.pk)
    data = ReturnDetailSerializer(return_request).data
    if not outcome.applied:
        data["detail"] = f"Return was already {return_request.get_status_display().lower()}."
    return Response(data, status=status.HTTP_200_OK)


@api_view(["PUT"])
@permission_classes([permissions.IsAuthenticated, CanApproveReturns])
def approve_return(request, return_id):
    """
    Approve a pending return, restock returned items and hand out exchange items.

    Request body:
    {
        "notes": "<optional approval notes>"
    }
    """
    return _decide(request, return_id, "approve")


@api_view(["PUT"])
@permission_classes([permissions.IsAuthenticated, CanApproveReturns])
def reject_return(request, return_id):
    """
    Reject a pending return.

    Request body:
    {
        "notes": "<reason for rejection>"
    }
    """
    return _decide(request, return_id, "reject")


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasStoreAccess])
def lookup_sale(request):
    """
    Find a sale by id or invoice number and list what can still be returned.

    When nothing matches exactly, the 404 response carries candidate sales
    matching the search text.
    """
    search = (request.query_params.get("search") or "").strip()
    if not search:
        return Response(
            {"errors": {"search": ["Enter an invoice number."]}},
            status=status.HTTP_400_BAD_REQUEST,
        )

    try:
        resolved = SaleResolver.resolve(search)
    except SaleNotFoundError as e:
        candidates = SaleResolver.search(search)
        return Response(
            {"detail": str(e), "candidates": SaleListSerializer(candidates, many=True).data},
            status=status.HTTP_404_NOT_FOUND,
        )
    except (NoValidItemsError, SaleNotEligibleError) as e:
        return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(ResolvedSaleSerializer(resolved).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasStoreAccess])
def exchange_products(request):
    """
    In-stock products that can be handed out in an exchange.

    Query parameters:
    - search: Name, SKU or category
    """
    queryset = InventoryService.in_stock_products(request.query_params.get("search"))
    paginator = PageNumberPagination()
    page = paginator.paginate_queryset(queryset, request)
    return paginator.get_paginated_response(ProductSerializer(page, many=True).data)
