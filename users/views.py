# users/views.py

from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import NotFoundError
from tasks.analytics import get_user_stats
from .serializers import UserListQuerySerializer, UserSerializer

User = get_user_model()


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Directory of active users, used to pick assignees and members.
    """
    queryset = User.objects.filter(is_active=True)
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"
    # only the me/stats action is throttled
    throttle_scope = None

    def list(self, request):
        params = UserListQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        qs = self.get_queryset()
        search = params.validated_data.get("search")
        if search:
            qs = qs.filter(
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search) |
                Q(username__icontains=search) |
                Q(email__icontains=search)
            )

        qs = qs[:params.validated_data["limit"]]
        return Response(self.get_serializer(qs, many=True).data)

    def retrieve(self, request, pk=None):
        user = User.objects.filter(pk=pk).first()
        if user is None:
            raise NotFoundError("User not found")
        if not user.is_active:
            raise NotFoundError("User account is deactivated")
        return Response(self.get_serializer(user).data)

    @action(detail=False, methods=['get'], url_path='me/stats', throttle_scope='analytics')
    def me_stats(self, request):
        """
        GET /api/users/me/stats/
        Task and project figures for the current user.
        """
        return Response(get_user_stats(request.user))
