import json
import os
import uuid

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from mastery.data.models import PracticeQuestion, ReviewCard, StreakRecord


class Command(BaseCommand):
    help = "Load review cards and practice questions for a user from a JSON file"

    def add_arguments(self, parser):
        parser.add_argument(
            "--file", default="MOCK_DATA.json", help="JSON file name to load data from"
        )
        parser.add_argument("--user-id", required=True, help="UUID of the owning user")
        parser.add_argument("--course-id", default=None, help="Optional course UUID")
        parser.add_argument(
            "--timezone", default="UTC", help="IANA timezone used for the user's streak"
        )
        parser.add_argument(
            "--reset", action="store_true", help="Delete the user's existing cards and questions first"
        )

    def handle(self, *args, **options):
        try:
            user_id = uuid.UUID(options["user_id"])
            course_id = uuid.UUID(options["course_id"]) if options["course_id"] else None
        except ValueError as e:
            raise CommandError(f"Invalid UUID: {e}")

        file_name = options["file"]
        json_file_path = file_name
        if not os.path.isabs(file_name):
            json_file_path = os.path.join(os.path.dirname(__file__), file_name)

        try:
            with open(json_file_path) as json_file:
                data = json.load(json_file)
        except (OSError, json.JSONDecodeError) as e:
            raise CommandError(f"Error loading data: {e}")

        with transaction.atomic():
            if options["reset"]:
                ReviewCard.objects.filter(user_id=user_id).delete()
                PracticeQuestion.objects.filter(user_id=user_id).delete()
                self.stdout.write(self.style.SUCCESS("Existing cards and questions deleted"))

            cards = [
                ReviewCard(
                    user_id=user_id,
                    course_id=course_id,
                    front=item["front"],
                    back=item["back"],
                    acceptable_answers=item.get("acceptable_answers", []),
                    context=item.get("context", ""),
                )
                for item in data.get("cards", [])
            ]
            questions = [
                PracticeQuestion(
                    user_id=user_id,
                    course_id=course_id,
                    question=item["question"],
                    expected_answer=item["expected_answer"],
                    acceptable_answers=item.get("acceptable_answers", []),
                    context=item.get("context", ""),
                )
                for item in data.get("questions", [])
            ]
            ReviewCard.objects.bulk_create(cards)
            PracticeQuestion.objects.bulk_create(questions)
            StreakRecord.objects.get_or_create(
                user_id=user_id, defaults={"tz_name": options["timezone"]}
            )

        self.stdout.write(
            self.style.SUCCESS(
                f"Loaded {len(cards)} cards and {len(questions)} questions from {file_name}"
            )
        )
