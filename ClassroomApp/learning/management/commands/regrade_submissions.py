from django.core.management.base import BaseCommand

from ClassroomApp.core.choices import SubmissionStatus, AUTO_GRADED_TYPES
from ClassroomApp.domain.services import submission_service
from ClassroomApp.learning.models import Submission

class Command(BaseCommand):
    help = "Recompute automatic scores of submitted MCQ / TF_ON_DOCUMENT submissions."

    def add_arguments(self, parser):
        parser.add_argument("--assignment", type=int, help="Only regrade submissions of this assignment.")

    def handle(self, *args, **options):
        subs = Submission.objects.select_related("assignment").filter(
            status=SubmissionStatus.SUBMITTED,
            assignment__type__in=AUTO_GRADED_TYPES,
        )
        if options.get("assignment"):
            subs = subs.filter(assignment_id=options["assignment"])
        updated = 0
        for sub in subs:
            before = sub.score
            submission_service.rescore_submission(sub)
            if sub.score != before:
                updated += 1
        self.stdout.write(self.style.SUCCESS(f"Updated {updated} submissions"))
