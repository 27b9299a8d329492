import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.permissions import IsAdmin
from .models import LibraryConfiguration
from .serializers import LibraryConfigurationSerializer

logger = logging.getLogger(__name__)


class LibraryConfigurationView(APIView):
    """
    Read and edit the circulation settings consumed by the borrowing policy
    """
    permission_classes = [IsAdmin]

    def get(self, request):
        config = LibraryConfiguration.get_solo()
        return Response({'config': LibraryConfigurationSerializer(config).data})

    def put(self, request):
        return self._update(request, partial=False)

    def patch(self, request):
        return self._update(request, partial=True)

    def _update(self, request, partial):
        config = LibraryConfiguration.reload()
        serializer = LibraryConfigurationSerializer(config, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save(updated_by=request.user)

        logger.info(f"Library configuration updated by {request.user.get_username()}: {sorted(serializer.validated_data)}")

        return Response(
            {
                'message': 'Configuration saved successfully',
                'config': LibraryConfigurationSerializer(LibraryConfiguration.reload()).data,
            },
            status=status.HTTP_200_OK
        )
