"""REST API views for authentication, users, classrooms, assignments, submissions, grading and uploads."""

import logging
import os
import uuid

from django.contrib.auth import get_user_model
from django.core.files.storage import default_storage
from django.shortcuts import get_object_or_404

from rest_framework import status, mixins, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.request import Request
from rest_framework.views import APIView

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiResponse,
    OpenApiParameter,
)

from ClassroomApp.classrooms.models import Classroom
from ClassroomApp.core.access import is_owner_or_admin
from ClassroomApp.core.choices import UserRole
from ClassroomApp.api.mixins import PaginationMixin
from ClassroomApp.api.throttles import SubmissionRateThrottle
from ClassroomApp.domain.services import (
    assignment_service,
    classroom_service,
    submission_service,
    user_service,
)
from ClassroomApp.learning.models import Assignment, Submission
from ClassroomApp.core.permissions import (
    IsClassroomOwnerOrAdmin,
    IsStudent,
    IsSubmissionParticipant,
    IsTeacherOrAdmin,
    IsUserManager,
)
from ClassroomApp.api.serializers import (
    RegistrationSerializer,
    UserSerializer,
    UserCreateSerializer,
    UserUpdateSerializer,
    ClassroomWriteSerializer,
    ClassroomReadSerializer,
    JoinClassroomSerializer,
    AddStudentSerializer,
    EnrollmentSerializer,
    AssignmentWriteSerializer,
    AssignmentUpdateSerializer,
    AssignmentReadSerializer,
    AssignmentListSerializer,
    SubmitSerializer,
    SubmissionReadSerializer,
    SubmissionListSerializer,
    GradeSerializer,
    UploadSerializer,
)

logger = logging.getLogger(__name__)

AUTH_RESPONSES = {
    401: OpenApiResponse(description="Authentication required."),
    403: OpenApiResponse(description="Forbidden"),
    404: OpenApiResponse(description="Not Found"),
}

VALIDATION_RESPONSE = {
    400: OpenApiResponse(description="Validation failed or invalid state."),
}

User = get_user_model()

# ---------- Auth ----------
@extend_schema(
    tags=["Auth"],
    request=RegistrationSerializer,
    responses={201: UserSerializer, **VALIDATION_RESPONSE},
    description="Register a new student account. Other roles are created by admins."
)
class RegistrationView(APIView):
    """Public student registration endpoint."""
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        ser = RegistrationSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = user_service.register_student(**ser.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


# ---------- Users ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Users"],
        parameters=[OpenApiParameter("role", str, OpenApiParameter.QUERY, required=False)],
        responses={200: UserSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Users"], responses={200: UserSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Users"],
        request=UserCreateSerializer,
        responses={201: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin", "manager"]}},
    ),
    partial_update=extend_schema(
        tags=["Users"],
        request=UserUpdateSerializer,
        responses={200: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin", "manager"]}},
    ),
    destroy=extend_schema(
        tags=["Users"],
        description="Deactivate (soft delete) an account.",
        responses={204: OpenApiResponse(description="Deactivated"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["admin", "manager"]}},
    ),
)
class UserViewSet(
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Account administration for admins and managers."""
    permission_classes = [IsAuthenticated, IsUserManager]
    serializer_class = UserSerializer

    def get_queryset(self):
        qs = User.objects.order_by("-date_joined")
        role = self.request.query_params.get("role")
        if role:
            qs = qs.filter(role=role)
        return qs

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), UserSerializer)

    def create(self, request: Request) -> Response:
        ser = UserCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = user_service.create_user(request.user, **ser.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, pk: int | None = None) -> Response:
        user = self.get_object()
        ser = UserUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        updated = user_service.update_user(request.user, user, ser.validated_data)
        return Response(UserSerializer(updated).data)

    def destroy(self, request: Request, pk: int | None = None) -> Response:
        user_service.deactivate_user(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Classrooms ----------
@extend_schema_view(
    list=extend_schema(tags=["Classrooms"], responses={200: ClassroomReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Classrooms"], responses={200: ClassroomReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Classrooms"],
        request=ClassroomWriteSerializer,
        responses={201: ClassroomReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner-on-create"}},
    ),
    partial_update=extend_schema(
        tags=["Classrooms"],
        request=ClassroomWriteSerializer,
        responses={200: ClassroomReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
    destroy=extend_schema(
        tags=["Classrooms"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
    join=extend_schema(
        tags=["Classrooms"],
        request=JoinClassroomSerializer,
        responses={201: EnrollmentSerializer, 200: EnrollmentSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
    leave=extend_schema(
        tags=["Classrooms"],
        request=None,
        responses={200: EnrollmentSerializer, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
)
class ClassroomViewSet(
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Classroom CRUD plus joining and leaving by code."""
    serializer_class = ClassroomReadSerializer

    def get_permissions(self) -> list:
        if self.action == "create":
            return [IsAuthenticated(), IsTeacherOrAdmin()]
        if self.action in ("partial_update", "update", "destroy"):
            return [IsAuthenticated(), IsClassroomOwnerOrAdmin()]
        if self.action in ("join", "leave"):
            return [IsAuthenticated(), IsStudent()]
        return [IsAuthenticated()]

    def get_queryset(self):
        """Return classrooms visible to the requesting user."""
        return Classroom.objects.visible_to(self.request.user).select_related("teacher").order_by("-created_at")

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), ClassroomReadSerializer)

    def create(self, request: Request) -> Response:
        ser = ClassroomWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        classroom = classroom_service.create_classroom(request.user, ser.validated_data)
        return Response(ClassroomReadSerializer(classroom).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, pk: int | None = None) -> Response:
        classroom = self.get_object()
        ser = ClassroomWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        updated = classroom_service.update_classroom(request.user, classroom, ser.validated_data)
        return Response(ClassroomReadSerializer(updated).data)

    def perform_destroy(self, instance: Classroom) -> None:
        classroom_service.delete_classroom(self.request.user, instance)

    @action(detail=False, methods=["post"], url_path="join")
    def join(self, request: Request) -> Response:
        """Join a classroom using its code."""
        ser = JoinClassroomSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        enrollment, reactivated = classroom_service.join_classroom(request.user, ser.validated_data["code"])
        code = status.HTTP_200_OK if reactivated else status.HTTP_201_CREATED
        return Response(EnrollmentSerializer(enrollment).data, status=code)

    @action(detail=True, methods=["post"], url_path="leave")
    def leave(self, request: Request, pk: int | None = None) -> Response:
        """Leave a classroom (the enrollment is kept with status LEFT)."""
        classroom = self.get_object()
        enrollment = classroom_service.leave_classroom(request.user, classroom)
        return Response(EnrollmentSerializer(enrollment).data)


class ClassroomNestedMixin:
    """Resolve ``classroom_pk`` from nested routes, restricted to classrooms the user can see."""

    def get_classroom(self) -> Classroom:
        classroom = getattr(self, "_classroom", None)
        if classroom is None:
            classroom = get_object_or_404(
                Classroom.objects.visible_to(self.request.user), pk=self.kwargs["classroom_pk"]
            )
            self._classroom = classroom
        return classroom


@extend_schema_view(
    list=extend_schema(tags=["Roster"], responses={200: EnrollmentSerializer(many=True), **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Roster"],
        request=AddStudentSerializer,
        responses={201: EnrollmentSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
    destroy=extend_schema(
        tags=["Roster"],
        description="Remove a student (lookup is the student's user id).",
        responses={204: OpenApiResponse(description="Removed"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
)
@extend_schema(parameters=[OpenApiParameter("classroom_pk", int, OpenApiParameter.PATH)])
class ClassroomStudentViewSet(ClassroomNestedMixin, PaginationMixin, viewsets.GenericViewSet):
    """Roster management for a classroom's teacher."""
    lookup_value_regex = r"\d+"
    permission_classes = [IsAuthenticated, IsTeacherOrAdmin]
    serializer_class = EnrollmentSerializer

    def list(self, request: Request, classroom_pk: int | None = None) -> Response:
        classroom = self.get_classroom()
        if not is_owner_or_admin(request.user, classroom):
            self.permission_denied(request, message="Only the classroom teacher can view the roster.")
        qs = classroom.enrollments.active().select_related("student").order_by("joined_at")
        return self.paginate_and_respond(qs, EnrollmentSerializer)

    def create(self, request: Request, classroom_pk: int | None = None) -> Response:
        ser = AddStudentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        enrollment = classroom_service.add_student(request.user, self.get_classroom(), ser.validated_data["email"])
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)

    def destroy(self, request: Request, classroom_pk: int | None = None, pk: int | None = None) -> Response:
        classroom_service.remove_student(request.user, self.get_classroom(), int(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Assignments ----------
@extend_schema_view(
    list=extend_schema(tags=["Assignments"], responses={200: AssignmentListSerializer(many=True), **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Assignments"],
        request=AssignmentWriteSerializer,
        responses={201: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
)
@extend_schema(parameters=[OpenApiParameter("classroom_pk", int, OpenApiParameter.PATH)])
class ClassroomAssignmentViewSet(ClassroomNestedMixin, PaginationMixin, viewsets.GenericViewSet):
    """List and create assignments of a classroom."""
    permission_classes = [IsAuthenticated]
    serializer_class = AssignmentListSerializer

    def get_permissions(self) -> list:
        if self.action == "create":
            return [IsAuthenticated(), IsTeacherOrAdmin()]
        return super().get_permissions()

    def list(self, request: Request, classroom_pk: int | None = None) -> Response:
        classroom = self.get_classroom()
        qs = Assignment.objects.visible_to(request.user).filter(classroom=classroom).order_by("-created_at")
        return self.paginate_and_respond(qs, AssignmentListSerializer)

    def create(self, request: Request, classroom_pk: int | None = None) -> Response:
        ser = AssignmentWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        questions = data.pop("questions", [])
        attachments = data.pop("attachments", [])
        assignment = assignment_service.create_assignment(
            request.user, self.get_classroom(), data, questions=questions, attachments=attachments
        )
        return Response(AssignmentReadSerializer(assignment).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    retrieve=extend_schema(
        tags=["Assignments"],
        description=(
            "Assignment with questions. Students get correct answers stripped and receive their own "
            "submission; teachers receive all submissions."
        ),
        responses={200: OpenApiResponse(description="{assignment, submission} or {assignment, submissions}"), **AUTH_RESPONSES},
    ),
    partial_update=extend_schema(
        tags=["Assignments"],
        request=AssignmentUpdateSerializer,
        responses={200: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
    destroy=extend_schema(
        tags=["Assignments"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
)
class AssignmentViewSet(
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Assignment detail, update, deletion and the student submit endpoint."""
    serializer_class = AssignmentReadSerializer
    lookup_value_regex = r"\d+"

    def get_permissions(self) -> list:
        if self.action in ("partial_update", "update", "destroy"):
            return [IsAuthenticated(), IsClassroomOwnerOrAdmin()]
        return [IsAuthenticated()]

    def get_queryset(self):
        return (
            Assignment.objects.visible_to(self.request.user)
            .select_related("classroom")
            .prefetch_related("questions__options", "attachments")
        )

    def retrieve(self, request: Request, *args, **kwargs) -> Response:
        assignment = self.get_object()
        user = request.user
        if user.role == UserRole.STUDENT:
            submission = (
                Submission.objects.filter(assignment=assignment, student=user)
                .prefetch_related("answers")
                .first()
            )
            return Response({
                "assignment": AssignmentReadSerializer(assignment, context={"reveal_answers": False}).data,
                "submission": SubmissionReadSerializer(submission).data if submission else None,
            })
        if is_owner_or_admin(user, assignment.classroom):
            submissions = submission_service.list_assignment_submissions_for_teacher(user, assignment)
            return Response({
                "assignment": AssignmentReadSerializer(assignment).data,
                "submissions": SubmissionReadSerializer(submissions, many=True).data,
            })
        return Response({"assignment": AssignmentReadSerializer(assignment, context={"reveal_answers": False}).data})

    def partial_update(self, request: Request, pk: int | None = None) -> Response:
        assignment = self.get_object()
        ser = AssignmentUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        updated = assignment_service.update_assignment(request.user, assignment, ser.validated_data)
        return Response(AssignmentReadSerializer(updated).data)

    def perform_destroy(self, instance: Assignment) -> None:
        assignment_service.delete_assignment(self.request.user, instance)

    @extend_schema(
        tags=["Submissions"],
        request=SubmitSerializer,
        description=(
            "Save a draft (`isDraft: true`) or submit final answers. Final MCQ and "
            "TF_ON_DOCUMENT submissions are scored immediately on a 0-10 scale. "
            "Endpoint is rate-limited."
        ),
        responses={
            200: OpenApiResponse(description="{success, message, submission, score?, details?}"),
            429: OpenApiResponse(description="Too many requests / throttled."),
            **AUTH_RESPONSES,
            **VALIDATION_RESPONSE,
        },
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    )
    @action(detail=True, methods=["post"], url_path="submit", throttle_classes=[SubmissionRateThrottle])
    def submit(self, request: Request, pk: int | None = None) -> Response:
        """Save or submit the requesting student's answers."""
        ser = SubmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        is_draft = ser.validated_data["is_draft"]
        result = submission_service.save_or_submit(
            request.user,
            int(pk),
            ser.validated_data["answers"],
            is_draft=is_draft,
        )
        payload = {
            "success": True,
            "message": "Draft saved." if is_draft else "Submitted successfully.",
            "submission": SubmissionReadSerializer(result.submission).data,
        }
        if result.summary is not None:
            payload["score"] = result.summary.score
            payload["details"] = result.summary.as_details()
        return Response(payload)


# ---------- Submissions ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Submissions"],
        parameters=[OpenApiParameter("assignment", int, OpenApiParameter.QUERY, required=False)],
        responses={200: SubmissionListSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer, **AUTH_RESPONSES}),
)
class SubmissionViewSet(
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Submission listing, detail and grading."""
    lookup_value_regex = r"\d+"

    permission_classes = [IsAuthenticated, IsSubmissionParticipant]
    queryset = Submission.objects.select_related("assignment__classroom", "student")

    def get_serializer_class(self):
        return SubmissionListSerializer if self.action == "list" else SubmissionReadSerializer

    def get_queryset(self):
        """Restrict submissions to the student's own unless teacher/admin."""
        if self.action == "retrieve":
            return self.queryset.prefetch_related("answers")
        qs = self.queryset.visible_to(self.request.user)
        assignment_id = self.request.query_params.get("assignment")
        if assignment_id:
            qs = qs.filter(assignment_id=assignment_id)
        return qs.order_by("-updated_at")

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), SubmissionListSerializer)

    @extend_schema(
        tags=["Grades"],
        request=GradeSerializer,
        responses={200: OpenApiResponse(description="{message, submission}"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    )
    @action(detail=True, methods=["post"], url_path="grade", permission_classes=[IsAuthenticated])
    def grade(self, request: Request, pk: int | None = None) -> Response:
        """Grade a submission and attach feedback (classroom teacher or admin)."""
        ser = GradeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = submission_service.grade_submission(
            request.user,
            int(pk),
            ser.validated_data["score"],
            ser.validated_data["max_score"],
            ser.validated_data.get("feedback"),
        )
        submission = self.queryset.prefetch_related("answers").get(pk=submission.pk)
        return Response({
            "message": "Submission graded.",
            "submission": SubmissionReadSerializer(submission).data,
        })


# ---------- Uploads ----------
@extend_schema(
    tags=["Uploads"],
    request={"multipart/form-data": UploadSerializer},
    responses={201: OpenApiResponse(description="{url, fileName, fileType}"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
)
class UploadView(APIView):
    """Store an attachment or recording and return its URL."""
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request: Request) -> Response:
        ser = UploadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        upload = ser.validated_data["file"]
        _, ext = os.path.splitext(upload.name)
        stored = default_storage.save(f"uploads/{uuid.uuid4().hex}{ext.lower()}", upload)
        logger.info("Upload stored: %s (%s) by user %s", stored, ser.validated_data["file_type"], request.user.pk)
        return Response(
            {"url": default_storage.url(stored), "fileName": upload.name, "fileType": ser.validated_data["file_type"]},
            status=status.HTTP_201_CREATED,
        )
