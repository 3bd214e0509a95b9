import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import serializers as drf_serializers
from drf_spectacular.utils import extend_schema

from .permissions import IsPaymentAdmin
from .serializers import PaymentEngineRequestSerializer, PaymentEngineResponseSerializer
from .services import PaymentEngine, PaymentEngineError

logger = logging.getLogger(__name__)


# Response serializers for API documentation
class ErrorSerializer(drf_serializers.Serializer):
    success = drf_serializers.BooleanField(default=False)
    error = drf_serializers.JSONField()


@extend_schema(
    request=PaymentEngineRequestSerializer,
    responses={
        200: PaymentEngineResponseSerializer,
        400: ErrorSerializer,
        403: ErrorSerializer,
        404: ErrorSerializer,
        409: ErrorSerializer,
    },
    description=(
        "Fee engine. `action` selects the operation: breakdown, status, full, "
        "partial_calculation, admin_partial_approval, partial_config."
    ),
    tags=['payment-engine'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPaymentAdmin])
def payment_engine(request):
    """Run one payment engine action - thin HTTP handler."""
    serializer = PaymentEngineRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {'success': False, 'error': serializer.errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    params = dict(serializer.validated_data, reviewed_by=request.user)

    try:
        result = PaymentEngine(logger=logger).handle(params)
    except PaymentEngineError as e:
        logger.warning(
            "Payment engine request failed",
            extra={'action': params.get('action'), 'error': e.detail, 'retryable': e.retryable},
        )
        body = {'success': False, 'error': e.detail}
        if e.retryable:
            body['retryable'] = True
        return Response(body, status=e.status_code)

    return Response(PaymentEngineResponseSerializer(result).data)
