from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiResponse
from rest_framework import mixins, viewsets, filters
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import Voicemail
from .serializers import VoicemailSerializer, VoicemailNotesSerializer
from .filters import VoicemailFilter
from .permissions import VoicemailPermission


@extend_schema_view(
    list=extend_schema(
        summary="📼 List voicemails",
        description="Voicemails of the current user, newest first. Use `is_new=true` for the unread inbox.",
        responses={200: OpenApiResponse(response=VoicemailSerializer(many=True), description="✅ Voicemails retrieved")},
        tags=["Voicemail"]
    ),
    retrieve=extend_schema(
        summary="🔍 Get voicemail",
        responses={
            200: OpenApiResponse(response=VoicemailSerializer, description="✅ Voicemail retrieved"),
            404: OpenApiResponse(description="🚫 Voicemail not found"),
        },
        tags=["Voicemail"]
    ),
    partial_update=extend_schema(
        summary="📝 Update voicemail notes",
        request=VoicemailNotesSerializer,
        responses={200: OpenApiResponse(response=VoicemailSerializer, description="✅ Notes updated")},
        tags=["Voicemail"]
    ),
    destroy=extend_schema(
        summary="🗑️ Delete voicemail",
        responses={204: OpenApiResponse(description="✅ Voicemail deleted")},
        tags=["Voicemail"]
    ),
)
class VoicemailViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       mixins.UpdateModelMixin,
                       mixins.DestroyModelMixin,
                       viewsets.GenericViewSet):
    serializer_class = VoicemailSerializer
    permission_classes = [VoicemailPermission]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = VoicemailFilter
    search_fields = ['from_number', 'notes', 'transcription']
    ordering_fields = ['created_at', 'duration']
    ordering = ['-created_at']
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        if self.request.user.is_staff:
            return Voicemail.objects.all()
        return Voicemail.objects.filter(user=self.request.user)

    def partial_update(self, request, *args, **kwargs):
        voicemail = self.get_object()
        serializer = VoicemailNotesSerializer(voicemail, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(VoicemailSerializer(voicemail).data)

    @extend_schema(
        summary="✅ Mark voicemail as read",
        request=None,
        responses={200: OpenApiResponse(response=VoicemailSerializer, description="✅ Voicemail marked read")},
        tags=["Voicemail"]
    )
    @action(detail=True, methods=['post'], url_path='mark-read')
    def mark_read(self, request, pk=None):
        voicemail = self.get_object()
        if voicemail.is_new:
            voicemail.is_new = False
            voicemail.save(update_fields=['is_new'])
        return Response(VoicemailSerializer(voicemail).data)
