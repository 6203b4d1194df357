"""
Token-addressed endpoints behind the approval/authorization e-mails.

The approver and the authorizer may not have an account, so these views are
public; the unguessable, expiring token is the credential.
"""
from __future__ import annotations

import logging

from rest_framework import serializers, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from .models import BatchStatus
from .serializers import ApproveBatchSerializer, PublicBatchSerializer, PublicTransactionSerializer
from .services.batch_service import BatchWorkflowError, InvalidBatchToken, PaymentBatchService
from .services.transaction_service import InvalidApprovalToken, TransactionError, TransactionService

logger = logging.getLogger(__name__)


class ApprovalDecisionSerializer(ApproveBatchSerializer):
    decision = serializers.ChoiceField(choices=["approve", "reject", "return", "reject_line"])
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    transaction_id = serializers.IntegerField(required=False)

    def validate(self, attrs):
        if attrs["decision"] == "reject_line" and not attrs.get("transaction_id"):
            raise serializers.ValidationError({"transaction_id": "Informe a transação a rejeitar."})
        return attrs


class AuthorizationDecisionSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=["authorize", "reject"])
    comment = serializers.CharField(required=False, allow_blank=True, default="")
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class TransactionDecisionSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=["approve", "reject"])
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PublicBatchTokenView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AnonRateThrottle]
    expected_status = None

    def get(self, request, token):
        try:
            batch = PaymentBatchService.get_by_token(token)
        except InvalidBatchToken as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        payload = PublicBatchSerializer(batch).data
        payload["actionable"] = batch.status == self.expected_status
        return Response(payload)

    def decide(self, request, token):
        raise NotImplementedError

    def post(self, request, token):
        try:
            batch = self.decide(request, token)
        except InvalidBatchToken as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except BatchWorkflowError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        batch.refresh_from_db()
        return Response(PublicBatchSerializer(batch).data)


class PublicBatchApprovalView(PublicBatchTokenView):
    expected_status = BatchStatus.PENDING_APPROVAL

    def decide(self, request, token):
        payload = ApprovalDecisionSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        if data["decision"] == "approve":
            return PaymentBatchService.approve_by_token(
                token, comment=data["comment"], adjustments=data["adjustments"], request=request
            )
        if data["decision"] == "reject":
            return PaymentBatchService.reject_by_token(token, reason=data["reason"], request=request)
        if data["decision"] == "reject_line":
            return PaymentBatchService.reject_transaction_by_token(
                token, data["transaction_id"], data["reason"], request=request
            )
        batch = PaymentBatchService.get_by_token(token)
        return PaymentBatchService.return_to_manager(batch, data["reason"], request=request)


class PublicBatchAuthorizationView(PublicBatchTokenView):
    expected_status = BatchStatus.PENDING_AUTHORIZATION

    def decide(self, request, token):
        payload = AuthorizationDecisionSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        if data["decision"] == "authorize":
            return PaymentBatchService.authorize_by_token(token, comment=data["comment"], request=request)
        return PaymentBatchService.reject_authorization_by_token(token, data["reason"], request=request)


class PublicTransactionApprovalView(APIView):
    """Single payable approved or rejected from the cost-center approver's e-mail."""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AnonRateThrottle]

    def get(self, request, token):
        try:
            txn = TransactionService.get_by_approval_token(token)
        except InvalidApprovalToken as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        return Response(PublicTransactionSerializer(txn).data)

    def post(self, request, token):
        payload = TransactionDecisionSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        try:
            if data["decision"] == "approve":
                txn = TransactionService.approve_by_token(token, request=request)
            else:
                txn = TransactionService.reject_by_token(token, data["reason"], request=request)
        except InvalidApprovalToken as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except TransactionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        logger.info("Transaction %s decided through approval link: %s", txn.pk, data["decision"])
        return Response(PublicTransactionSerializer(txn).data)
