from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from core.pagination import paginate
from .serializers import MembershipChangeSerializer, ProjectSerializer, ProjectWriteSerializer
from .services import ProjectService


class ProjectListCreateView(APIView):
    """
    GET  /api/projects/?status=&search=&limit=&offset=
    POST /api/projects/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = ProjectService.list_projects_for(
            user=request.user,
            status=request.query_params.get("status"),
            search=request.query_params.get("search"),
        )
        page, meta = paginate(qs, request)
        serializer = ProjectSerializer(page, many=True, context={"request": request})
        return Response({**meta, "results": serializer.data}, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = ProjectWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        project = ProjectService.create_project(owner=request.user, **serializer.validated_data)
        return Response(
            ProjectSerializer(project, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )


class ProjectDetailView(APIView):
    """
    GET / PUT / PATCH / DELETE /api/projects/<project_id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, project_id):
        project = ProjectService.get_project_for(project_id=project_id, user=request.user)
        return Response(ProjectSerializer(project, context={"request": request}).data)

    def put(self, request, project_id):
        return self._update(request, project_id, partial=False)

    def patch(self, request, project_id):
        return self._update(request, project_id, partial=True)

    def _update(self, request, project_id, partial):
        serializer = ProjectWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        project = ProjectService.update_project(
            project_id=project_id,
            user=request.user,
            **serializer.validated_data,
        )
        return Response(ProjectSerializer(project, context={"request": request}).data)

    def delete(self, request, project_id):
        ProjectService.delete_project(project_id=project_id, user=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ProjectAdminsView(APIView):
    """
    POST   /api/projects/<project_id>/admins/            {"user_id": ...}
    DELETE /api/projects/<project_id>/admins/<user_id>/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, project_id):
        serializer = MembershipChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        project = ProjectService.add_admin(
            project_id=project_id,
            user=request.user,
            target_id=serializer.validated_data["user_id"],
        )
        return Response(
            ProjectSerializer(project, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )

    def delete(self, request, project_id, user_id):
        project = ProjectService.remove_admin(project_id=project_id, user=request.user, target_id=user_id)
        return Response(ProjectSerializer(project, context={"request": request}).data)


class ProjectMembersView(APIView):
    """
    POST   /api/projects/<project_id>/members/            {"user_id": ...}
    DELETE /api/projects/<project_id>/members/<user_id>/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, project_id):
        serializer = MembershipChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        project = ProjectService.add_member(
            project_id=project_id,
            user=request.user,
            target_id=serializer.validated_data["user_id"],
        )
        return Response(
            ProjectSerializer(project, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )

    def delete(self, request, project_id, user_id):
        project = ProjectService.remove_member(project_id=project_id, user=request.user, target_id=user_id)
        return Response(ProjectSerializer(project, context={"request": request}).data)
