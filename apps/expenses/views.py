from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from .models import Category, Payment, RecurringRule
from .permissions import IsGroupMemberForRecord
from .serializers import (
    CategoryCreateSerializer,
    CategorySerializer,
    GroupFilterSerializer,
    PaymentCreateSerializer,
    PaymentFilterSerializer,
    PaymentSerializer,
    PaymentUpdateSerializer,
    RecurringRuleCreateSerializer,
    RecurringRuleSerializer,
    RecurringRuleUpdateSerializer,
)

from apps.expenses.services import (
    create_category,
    create_payment,
    create_recurring_rule,
    deactivate_recurring_rule,
    delete_category,
    delete_payment,
    delete_recurring_rule,
    update_payment,
    update_recurring_rule,
    # Exceptions
    CategoryNotFoundError,
    DuplicateCategoryError,
    InvalidRuleError,
    InvalidSplitError,
    NotGroupMemberError,
    PaymentAlreadySettledError,
    PaymentNotFoundError,
    RecurringRuleNotFoundError,
)
from apps.groups.services import is_group_member


class PaymentPagination(PageNumberPagination):
    """Custom pagination for payments."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 200


def _require_membership(request, group_id):
    if not is_group_member(group_id, request.user.id):
        return Response(
            {'error': 'You are not a member of this group'},
            status=status.HTTP_403_FORBIDDEN
        )
    return None


class PaymentViewSet(viewsets.ModelViewSet):
    """
    ViewSet for shared payments.

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Payments of one group (``?group=<id>``)
    create: Record a payment
    retrieve: Get a specific payment
    partial_update: Update an unsettled payment
    destroy: Delete an unsettled payment
    """

    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated, IsGroupMemberForRecord]
    lookup_value_regex = '[0-9a-fA-F-]{36}'
    pagination_class = PaymentPagination
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        """Payments of groups the user belongs to."""
        return (
            Payment.objects
            .filter(group__memberships__user=self.request.user)
            .select_related('payer', 'category', 'group')
            .prefetch_related('splits__user')
            .distinct()
        )

    def list(self, request, *args, **kwargs):
        filter_serializer = PaymentFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        denied = _require_membership(request, params['group'])
        if denied:
            return denied

        queryset = self.get_queryset().filter(group_id=params['group'])
        if 'date_from' in params:
            queryset = queryset.filter(payment_date__gte=params['date_from'])
        if 'date_to' in params:
            queryset = queryset.filter(payment_date__lte=params['date_to'])
        if params.get('unsettled'):
            queryset = queryset.filter(settlement__isnull=True)

        page = self.paginate_queryset(queryset)
        serializer = PaymentSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @extend_schema(request=PaymentCreateSerializer, responses={201: PaymentSerializer})
    def create(self, request, *args, **kwargs):
        """Record a payment."""
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            payment = create_payment(
                group_id=data['group'],
                user=request.user,
                payer_id=data.get('payer_id', request.user.id),
                amount=data['amount'],
                description=data['description'],
                payment_date=data.get('payment_date') or timezone.localdate(),
                category_id=data.get('category_id'),
                splits=data.get('splits'),
                custom_amounts=data.get('custom_amounts'),
                beneficiary_id=data.get('beneficiary_id'),
            )
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except CategoryNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InvalidSplitError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = PaymentSerializer(payment)
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(request=PaymentUpdateSerializer, responses={200: PaymentSerializer})
    def partial_update(self, request, *args, **kwargs):
        """Update an unsettled payment."""
        self.get_object()
        serializer = PaymentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        changes = dict(serializer.validated_data)
        if 'splits' in changes and changes['splits'] is None:
            changes['splits'] = []

        try:
            payment = update_payment(payment_id=self.kwargs['pk'], user=request.user, **changes)
        except PaymentNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except PaymentAlreadySettledError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except CategoryNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InvalidSplitError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        payment = self.get_queryset().get(id=payment.id)
        return Response(PaymentSerializer(payment).data)

    def destroy(self, request, *args, **kwargs):
        """Delete an unsettled payment."""
        self.get_object()
        try:
            delete_payment(payment_id=self.kwargs['pk'], user=request.user)
        except PaymentNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except PaymentAlreadySettledError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        return Response(status=status.HTTP_204_NO_CONTENT)


class RecurringRuleViewSet(viewsets.ModelViewSet):
    """
    ViewSet for recurring rules.

    list: Rules of one group (``?group=<id>``)
    create: Create a rule
    retrieve: Get a specific rule
    partial_update: Update a rule and its split template
    destroy: Delete a rule
    deactivate: Stop a rule from firing
    """

    serializer_class = RecurringRuleSerializer
    permission_classes = [IsAuthenticated, IsGroupMemberForRecord]
    lookup_value_regex = '[0-9a-fA-F-]{36}'
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        return (
            RecurringRule.objects
            .filter(group__memberships__user=self.request.user)
            .select_related('default_payer', 'category', 'group')
            .prefetch_related('splits__user')
            .distinct()
        )

    def list(self, request, *args, **kwargs):
        filter_serializer = GroupFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        group_id = filter_serializer.validated_data['group']

        denied = _require_membership(request, group_id)
        if denied:
            return denied

        rules = self.get_queryset().filter(group_id=group_id)
        return Response(RecurringRuleSerializer(rules, many=True).data)

    @extend_schema(request=RecurringRuleCreateSerializer, responses={201: RecurringRuleSerializer})
    def create(self, request, *args, **kwargs):
        """Create a recurring rule."""
        serializer = RecurringRuleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        group_id = data.pop('group')

        try:
            rule = create_recurring_rule(group_id=group_id, user=request.user, **data)
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except CategoryNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InvalidSplitError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        rule = self.get_queryset().get(id=rule.id)
        return Response(RecurringRuleSerializer(rule).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=RecurringRuleUpdateSerializer, responses={200: RecurringRuleSerializer})
    def partial_update(self, request, *args, **kwargs):
        """Update a recurring rule."""
        self.get_object()
        serializer = RecurringRuleUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        try:
            rule = update_recurring_rule(
                rule_id=self.kwargs['pk'],
                user=request.user,
                **serializer.validated_data
            )
        except RecurringRuleNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except CategoryNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except (InvalidSplitError, InvalidRuleError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        rule = self.get_queryset().get(id=rule.id)
        return Response(RecurringRuleSerializer(rule).data)

    def destroy(self, request, *args, **kwargs):
        """Delete a rule. Settlement entries keep their data."""
        self.get_object()
        try:
            delete_recurring_rule(rule_id=self.kwargs['pk'], user=request.user)
        except RecurringRuleNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=None, responses={200: RecurringRuleSerializer})
    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        """Stop a rule from firing."""
        self.get_object()
        try:
            rule = deactivate_recurring_rule(rule_id=pk, user=request.user)
        except RecurringRuleNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

        rule = self.get_queryset().get(id=rule.id)
        return Response(RecurringRuleSerializer(rule).data)


class CategoryViewSet(mixins.ListModelMixin,
                      mixins.CreateModelMixin,
                      mixins.DestroyModelMixin,
                      viewsets.GenericViewSet):
    """
    list: Categories of one group (``?group=<id>``)
    create: Create a category
    destroy: Delete a category
    """

    serializer_class = CategorySerializer
    permission_classes = [IsAuthenticated, IsGroupMemberForRecord]
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_queryset(self):
        return Category.objects.filter(group__memberships__user=self.request.user).distinct()

    def list(self, request, *args, **kwargs):
        filter_serializer = GroupFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        group_id = filter_serializer.validated_data['group']

        denied = _require_membership(request, group_id)
        if denied:
            return denied

        categories = self.get_queryset().filter(group_id=group_id)
        return Response(CategorySerializer(categories, many=True).data)

    @extend_schema(request=CategoryCreateSerializer, responses={201: CategorySerializer})
    def create(self, request, *args, **kwargs):
        serializer = CategoryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            category = create_category(
                group_id=data['group'],
                user=request.user,
                name=data['name'],
                icon=data.get('icon', ''),
                color=data.get('color', ''),
            )
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except DuplicateCategoryError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        self.get_object()
        try:
            delete_category(category_id=self.kwargs['pk'], user=request.user)
        except CategoryNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotGroupMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        return Response(status=status.HTTP_204_NO_CONTENT)
