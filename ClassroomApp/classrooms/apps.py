from django.apps import AppConfig

class ClassroomsConfig(AppConfig):
    """AppConfig for classrooms and enrollments."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "ClassroomApp.classrooms"
    label = "classrooms"
