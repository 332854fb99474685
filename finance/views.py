"""
Finance App Views - Wallet & Transactions API
"""

from rest_framework import viewsets, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from django.db.models import Sum

from core.pagination import PageLimitPagination
from .models import Transaction, TransactionType, WalletService
from .serializers import TransactionSerializer, TransactionListSerializer, WalletSerializer


class TransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    The caller's transaction history, newest first.
    ?type= filters by transaction type.
    """

    permission_classes = [permissions.IsAuthenticated]
    pagination_class = PageLimitPagination

    def get_serializer_class(self):
        if self.action == 'list':
            return TransactionListSerializer
        return TransactionSerializer

    def get_queryset(self):
        qs = Transaction.objects.filter(user=self.request.user).select_related('package')
        tx_type = self.request.query_params.get('type')
        if tx_type:
            qs = qs.filter(transaction_type=tx_type.upper())
        return qs


class WalletViewSet(viewsets.ViewSet):
    permission_classes = [permissions.IsAuthenticated]

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Balance plus lifetime credits, debits and refunds."""
        wallet = WalletService.get_wallet(request.user)
        transactions = Transaction.objects.filter(user=request.user)

        credits = transactions.filter(amount__gt=0).aggregate(total=Sum('amount'))['total'] or 0
        debits = transactions.filter(amount__lt=0).aggregate(total=Sum('amount'))['total'] or 0
        refunds = transactions.filter(
            transaction_type=TransactionType.REFUND
        ).aggregate(total=Sum('amount'))['total'] or 0

        return Response({
            'wallet': WalletSerializer(wallet).data,
            'total_transactions': transactions.count(),
            'total_credits': credits,
            'total_debits': abs(debits),
            'total_refunds': refunds,
        })
