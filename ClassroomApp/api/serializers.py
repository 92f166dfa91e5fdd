from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError

from ClassroomApp.classrooms.models import Classroom, ClassEnrollment
from ClassroomApp.learning.models import (
    Assignment, AssignmentAttachment, Question, Option, Submission, Answer, Feedback
)
from ClassroomApp.core.choices import AccountStatus, ClassroomStatus
from ClassroomApp.core.validators import validate_file_size, validate_upload_mime
from ClassroomApp.domain.services.user_service import MANAGED_ROLES

User = get_user_model()

# ---------- Users ----------
class RegistrationSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, help_text="User password (write-only).")
    name = serializers.CharField(min_length=2, max_length=150)


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "email", "name", "role", "status", "date_joined"]


class UserMiniSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "name", "email"]


class UserCreateSerializer(RegistrationSerializer):
    role = serializers.ChoiceField(choices=[(r.value, r.label) for r in MANAGED_ROLES])


class UserUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    password = serializers.CharField(write_only=True, min_length=6, required=False)
    name = serializers.CharField(min_length=2, max_length=150, required=False)
    status = serializers.ChoiceField(choices=AccountStatus.choices, required=False)


# ---------- Classrooms ----------
class ClassroomWriteSerializer(serializers.ModelSerializer):
    status = serializers.ChoiceField(choices=ClassroomStatus.choices, required=False)

    class Meta:
        model = Classroom
        fields = ["name", "description", "subject", "status"]
        extra_kwargs = {
            "name": {"help_text": "Class name."},
            "description": {"required": False},
            "subject": {"required": False},
        }


class ClassroomReadSerializer(serializers.ModelSerializer):
    teacher = UserMiniSerializer(read_only=True)
    student_count = serializers.SerializerMethodField()
    assignment_count = serializers.SerializerMethodField()

    class Meta:
        model = Classroom
        fields = [
            "id", "name", "description", "subject", "code", "status", "teacher",
            "student_count", "assignment_count", "created_at", "updated_at",
        ]

    def get_student_count(self, obj: Classroom) -> int:
        return obj.enrollments.active().count()

    def get_assignment_count(self, obj: Classroom) -> int:
        return obj.assignments.count()


class JoinClassroomSerializer(serializers.Serializer):
    code = serializers.CharField(min_length=6, max_length=6, help_text="Six character class code.")


class AddStudentSerializer(serializers.Serializer):
    email = serializers.EmailField()


class EnrollmentSerializer(serializers.ModelSerializer):
    student = UserMiniSerializer(read_only=True)

    class Meta:
        model = ClassEnrollment
        fields = ["id", "classroom", "student", "status", "joined_at"]


# ---------- Assignments ----------
class OptionWriteSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=500)
    is_correct = serializers.BooleanField(default=False)


class QuestionWriteSerializer(serializers.Serializer):
    content = serializers.CharField()
    correct_text = serializers.CharField(max_length=255, required=False, allow_null=True)
    media_url = serializers.CharField(max_length=500, required=False, allow_blank=True)
    options = OptionWriteSerializer(many=True, required=False)


class AttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssignmentAttachment
        fields = ["id", "url", "file_name", "file_type"]
        read_only_fields = ["id"]


class AssignmentWriteSerializer(serializers.ModelSerializer):
    questions = QuestionWriteSerializer(many=True, required=False)
    attachments = AttachmentSerializer(many=True, required=False)

    class Meta:
        model = Assignment
        fields = ["title", "description", "type", "status", "deadline", "questions", "attachments"]
        extra_kwargs = {
            "type": {"help_text": "One of MCQ, ESSAY, PRONUNCIATION, TRANSLATION_SPEAKING, TF_ON_DOCUMENT."},
            "status": {"help_text": "DRAFT (default), OPEN or CLOSED."},
        }


class AssignmentUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Assignment
        fields = ["title", "description", "status", "deadline"]


class OptionReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Option
        fields = ["id", "content", "is_correct", "order_index"]


class QuestionReadSerializer(serializers.ModelSerializer):
    """Question with options; answer keys are dropped unless ``reveal_answers`` is set in context."""
    options = OptionReadSerializer(many=True, read_only=True)

    class Meta:
        model = Question
        fields = ["id", "content", "correct_text", "media_url", "order_index", "options"]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if not self.context.get("reveal_answers", True):
            data.pop("correct_text", None)
            for option in data["options"]:
                option.pop("is_correct", None)
        return data


class AssignmentReadSerializer(serializers.ModelSerializer):
    questions = QuestionReadSerializer(many=True, read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)
    classroom = serializers.PrimaryKeyRelatedField(read_only=True)
    submission_count = serializers.SerializerMethodField()

    class Meta:
        model = Assignment
        fields = [
            "id", "classroom", "title", "description", "type", "status", "deadline",
            "questions", "attachments", "submission_count", "created_by", "created_at", "updated_at",
        ]

    def get_submission_count(self, obj: Assignment) -> int:
        return obj.submissions.count()


class AssignmentListSerializer(serializers.ModelSerializer):
    class Meta:
        model = Assignment
        fields = ["id", "classroom", "title", "type", "status", "deadline", "created_at"]


# ---------- Submissions ----------
class AnswerInputSerializer(serializers.Serializer):
    questionId = serializers.IntegerField(source="question_id")
    selectedOptionIds = serializers.ListField(
        child=serializers.IntegerField(), source="selected_option_ids", required=False
    )
    textContent = serializers.CharField(source="text_content", required=False, allow_blank=True)
    audioUrl = serializers.CharField(source="audio_url", required=False, allow_blank=True, max_length=500)
    documentLabels = serializers.DictField(
        child=serializers.BooleanField(), source="document_labels", required=False
    )


class SubmitSerializer(serializers.Serializer):
    answers = AnswerInputSerializer(many=True)
    isDraft = serializers.BooleanField(source="is_draft", default=False)


class AnswerReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Answer
        fields = [
            "id", "question", "selected_option_ids", "text_content", "audio_url",
            "document_labels", "score", "max_score",
        ]


class FeedbackSerializer(serializers.ModelSerializer):
    teacher = UserMiniSerializer(read_only=True)

    class Meta:
        model = Feedback
        fields = ["id", "comment", "teacher", "created_at", "updated_at"]


class SubmissionReadSerializer(serializers.ModelSerializer):
    student = UserMiniSerializer(read_only=True)
    answers = AnswerReadSerializer(many=True, read_only=True)
    feedback = serializers.SerializerMethodField()

    class Meta:
        model = Submission
        fields = [
            "id", "assignment", "student", "status", "score", "max_score",
            "submitted_at", "graded_at", "answers", "feedback", "created_at", "updated_at",
        ]

    def get_feedback(self, obj: Submission) -> dict | None:
        try:
            feedback = obj.feedback
        except Feedback.DoesNotExist:
            return None
        return FeedbackSerializer(feedback).data


class SubmissionListSerializer(serializers.ModelSerializer):
    student = UserMiniSerializer(read_only=True)

    class Meta:
        model = Submission
        fields = ["id", "assignment", "student", "status", "score", "max_score", "submitted_at", "graded_at"]


class GradeSerializer(serializers.Serializer):
    score = serializers.FloatField(min_value=0)
    maxScore = serializers.FloatField(source="max_score", min_value=0)
    feedback = serializers.CharField(required=False, allow_blank=True)


# ---------- Uploads ----------
class UploadSerializer(serializers.Serializer):
    file = serializers.FileField(help_text="Image, PDF or audio file; size/type validated.")

    def validate(self, attrs):
        file_obj = attrs["file"]
        try:
            validate_file_size(file_obj)
            mime = validate_upload_mime(file_obj)
        except DjangoValidationError as exc:
            raise serializers.ValidationError({"file": exc.messages})
        attrs["file_type"] = mime or file_obj.content_type
        return attrs
