from zoneinfo import available_timezones

from rest_framework import serializers

from ..domain.enums import Rating


class AttemptInSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    target_id = serializers.UUIDField()
    submitted_answer = serializers.CharField(allow_blank=True, trim_whitespace=False)
    quality_rating = serializers.ChoiceField(
        choices=[r.value for r in Rating], required=False, allow_null=True
    )
    idempotency_key = serializers.CharField(max_length=64, required=False)


class EvaluateAnswerSerializer(serializers.Serializer):
    question = serializers.CharField()
    expected_answer = serializers.CharField()
    user_answer = serializers.CharField(allow_blank=True, required=False, default="")
    acceptable_answers = serializers.ListField(
        child=serializers.CharField(allow_blank=True), required=False, default=list
    )
    context = serializers.CharField(allow_blank=True, required=False, allow_null=True)


class DueQuerySerializer(serializers.Serializer):
    until = serializers.DateTimeField(required=False)  # ISO-8601, defaults to now
    limit = serializers.IntegerField(min_value=1, max_value=500, default=100)


class TimezoneSerializer(serializers.Serializer):
    timezone = serializers.CharField(max_length=64)

    def validate_timezone(self, value):
        if value not in available_timezones():
            raise serializers.ValidationError(f"Unknown IANA timezone: {value}")
        return value
