from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .models import SettlementEntry, SettlementSession
from .permissions import IsSessionGroupMember
from .serializers import (
    EntrySplitsSerializer,
    EntryUpdateSerializer,
    GroupBalancesSerializer,
    ManualEntryCreateSerializer,
    PeriodSuggestionQuerySerializer,
    PeriodSuggestionSerializer,
    SessionCreateSerializer,
    SessionFilterSerializer,
    SessionIdsSerializer,
    SettlementEntrySerializer,
    SettlementSessionListSerializer,
    SettlementSessionSerializer,
    TransferSerializer,
)

from apps.groups.services import is_group_member
from apps.settlements.services import (
    add_manual_entry,
    confirm_settlement,
    confirm_settlement_receipt,
    create_session,
    delete_manual_entry,
    delete_session,
    generate_settlement_entries,
    get_consolidated_transfers,
    get_group_balances,
    refresh_settlement_entries,
    replace_entry_splits,
    report_payment,
    settle_consolidated_sessions,
    suggest_settlement_period,
    update_entry,
    # Exceptions
    SettlementsServiceError,
    SessionNotFoundError,
    NotGroupMemberError,
    InvalidSessionStatusError,
    NoFilledEntriesError,
    NotTransferPartyError,
    PaymentNotReportedError,
    EntryNotEditableError,
    InvalidEntryInputError,
    InsufficientPermissionsError,
)


ERROR_STATUS = {
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
    NotGroupMemberError: status.HTTP_403_FORBIDDEN,
    NotTransferPartyError: status.HTTP_403_FORBIDDEN,
    InsufficientPermissionsError: status.HTTP_403_FORBIDDEN,
    InvalidSessionStatusError: status.HTTP_409_CONFLICT,
    PaymentNotReportedError: status.HTTP_409_CONFLICT,
    NoFilledEntriesError: status.HTTP_400_BAD_REQUEST,
    EntryNotEditableError: status.HTTP_400_BAD_REQUEST,
    InvalidEntryInputError: status.HTTP_400_BAD_REQUEST,
}


def error_response(exc: SettlementsServiceError) -> Response:
    """Convert a settlements service error into an HTTP response."""
    return Response(
        {'error': str(exc), 'code': exc.code},
        status=ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    )


class SettlementSessionViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    ViewSet for settlement sessions.

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Sessions of one group (``?group=<id>``)
    create: Open a draft for a period; its checklist is generated at once
    retrieve: Session with entries, transfers and the caller's balance
    destroy: Delete a draft (creator only)
    """

    serializer_class = SettlementSessionSerializer
    permission_classes = [IsAuthenticated, IsSessionGroupMember]
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_queryset(self):
        """Sessions of groups the user belongs to."""
        return (
            SettlementSession.objects
            .filter(group__memberships__user=self.request.user)
            .select_related('group', 'created_by', 'confirmed_by', 'payment_reported_by', 'settled_by')
            .prefetch_related('entries__splits__user', 'entries__payer', 'entries__filled_by')
            .distinct()
        )

    def _session_data(self, session_id):
        session = self.get_queryset().get(id=session_id)
        return SettlementSessionSerializer(session, context={'request': self.request}).data

    def list(self, request):
        filter_serializer = SessionFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if not is_group_member(params['group'], request.user.id):
            return error_response(NotGroupMemberError("You are not a member of this group"))

        sessions = SettlementSession.objects.filter(group_id=params['group'])
        if 'status' in params:
            sessions = sessions.filter(status=params['status'])
        return Response(SettlementSessionListSerializer(sessions, many=True).data)

    @extend_schema(request=SessionCreateSerializer, responses={201: SettlementSessionSerializer})
    def create(self, request):
        """Open a draft settlement session."""
        serializer = SessionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            session, entry_count = create_session(
                group_id=data['group'],
                period_start=data['period_start'],
                period_end=data['period_end'],
                user=request.user,
            )
        except SettlementsServiceError as e:
            return error_response(e)

        response_data = self._session_data(session.id)
        response_data['entry_count'] = entry_count
        return Response(response_data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        """Delete a draft session."""
        try:
            delete_session(session_id=pk, user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=None)
    @action(detail=True, methods=['post'])
    def generate(self, request, pk=None):
        """Discard the checklist and rebuild it from rules and payments."""
        try:
            entry_count = generate_settlement_entries(session_id=pk, user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response({'entry_count': entry_count, 'session': self._session_data(pk)})

    @extend_schema(request=None)
    @action(detail=True, methods=['post'])
    def refresh(self, request, pk=None):
        """Bring the checklist up to date, keeping entries already acted on."""
        try:
            added_count = refresh_settlement_entries(session_id=pk, user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response({'added_count': added_count, 'session': self._session_data(pk)})

    @extend_schema(request=ManualEntryCreateSerializer, responses={201: SettlementEntrySerializer})
    @action(detail=True, methods=['post'])
    def entries(self, request, pk=None):
        """Add a one-off manual entry to a draft."""
        serializer = ManualEntryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            entry = add_manual_entry(session_id=pk, user=request.user, **serializer.validated_data)
        except SettlementsServiceError as e:
            return error_response(e)

        return Response(SettlementEntrySerializer(entry).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None)
    @action(detail=True, methods=['post'])
    def confirm(self, request, pk=None):
        """Confirm a draft and compute its transfers."""
        try:
            payment_count = confirm_settlement(session_id=pk, user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response({'payment_count': payment_count, 'session': self._session_data(pk)})

    @extend_schema(request=None, responses={200: SettlementSessionSerializer})
    @action(detail=True, methods=['post'])
    def report_payment(self, request, pk=None):
        """Payer reports their transfers as sent."""
        try:
            report_payment(session_id=pk, user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response(self._session_data(pk))

    @extend_schema(request=None)
    @action(detail=True, methods=['post'])
    def confirm_receipt(self, request, pk=None):
        """Recipient confirms the transfers arrived."""
        try:
            payment_count = confirm_settlement_receipt(session_id=pk, user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response({'payment_count': payment_count, 'session': self._session_data(pk)})

    @extend_schema(parameters=[PeriodSuggestionQuerySerializer], responses={200: PeriodSuggestionSerializer})
    @action(detail=False, methods=['get'])
    def suggest(self, request):
        """Suggest the next period to settle."""
        query = PeriodSuggestionQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            suggestion = suggest_settlement_period(group_id=query.validated_data['group'], user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response(PeriodSuggestionSerializer(suggestion).data)

    @extend_schema(parameters=[PeriodSuggestionQuerySerializer], responses={200: GroupBalancesSerializer})
    @action(detail=False, methods=['get'])
    def balances(self, request):
        """Balances and suggested transfers over unsettled payments."""
        query = PeriodSuggestionQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            balances, result = get_group_balances(group_id=query.validated_data['group'], user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)

        return Response(GroupBalancesSerializer({
            'balances': balances,
            'settlements': result.settlements,
            'unsettled_remainder': result.unsettled_remainder,
        }).data)

    @extend_schema(request=SessionIdsSerializer)
    @action(detail=False, methods=['post'])
    def consolidate(self, request):
        """Net the transfers of several pending sessions."""
        serializer = SessionIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            transfers, is_zero = get_consolidated_transfers(
                session_ids=serializer.validated_data['session_ids'],
                user=request.user,
            )
        except SettlementsServiceError as e:
            return error_response(e)

        return Response({
            'transfers': TransferSerializer(transfers, many=True).data,
            'is_zero': is_zero,
        })

    @extend_schema(request=SessionIdsSerializer)
    @action(detail=False, methods=['post'])
    def settle_consolidated(self, request):
        """Settle several sessions paid together."""
        serializer = SessionIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            settled_count = settle_consolidated_sessions(
                session_ids=serializer.validated_data['session_ids'],
                user=request.user,
            )
        except SettlementsServiceError as e:
            return error_response(e)
        return Response({'settled_count': settled_count})


class SettlementEntryViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    retrieve: Get an entry
    partial_update: Fill, skip or reopen an entry
    destroy: Delete a manual entry
    splits: Replace an entry's custom split
    """

    serializer_class = SettlementEntrySerializer
    permission_classes = [IsAuthenticated, IsSessionGroupMember]
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_queryset(self):
        return (
            SettlementEntry.objects
            .filter(session__group__memberships__user=self.request.user)
            .select_related('session__group', 'payer', 'filled_by')
            .prefetch_related('splits__user')
            .distinct()
        )

    def _entry_data(self, entry_id):
        return SettlementEntrySerializer(self.get_queryset().get(id=entry_id)).data

    @extend_schema(request=EntryUpdateSerializer, responses={200: SettlementEntrySerializer})
    def partial_update(self, request, pk=None):
        serializer = EntryUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            update_entry(entry_id=pk, user=request.user, **serializer.validated_data)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response(self._entry_data(pk))

    def destroy(self, request, pk=None):
        try:
            delete_manual_entry(entry_id=pk, user=request.user)
        except SettlementsServiceError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=EntrySplitsSerializer, responses={200: SettlementEntrySerializer})
    @action(detail=True, methods=['put'])
    def splits(self, request, pk=None):
        serializer = EntrySplitsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            replace_entry_splits(entry_id=pk, user=request.user, splits=serializer.validated_data['splits'])
        except SettlementsServiceError as e:
            return error_response(e)
        return Response(self._entry_data(pk))
