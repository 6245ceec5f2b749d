from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from permissions.principal import resolve_principal
from users.serializers import MeSerializer, UserSerializer


class MeView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = MeSerializer

    @extend_schema(
        responses={200: MeSerializer},
        description="Current user profile plus the resolved access principal",
    )
    def get(self, request):
        user = request.user
        principal = resolve_principal(user)

        return Response(
            {
                "user": UserSerializer(user).data,
                "principal": principal.as_dict(),
            }
        )
