import json

from django.core.exceptions import ValidationError
from django.db import models


class Configuration(models.Model):
    """
    Site settings which can be changed at runtime from the admin without a
    deploy. Values are stored as text and cast according to ``data_type``.
    """

    class DataType(models.TextChoices):
        TEXT = "text", "Plain text"
        NUMBER = "number", "Number"
        BOOLEAN = "boolean", "Boolean"
        JSON = "json", "JSON"

    key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique identifier for the configuration setting",
    )
    data_type = models.CharField(
        max_length=10,
        choices=DataType.choices,
        default=DataType.TEXT,
        help_text="Data type of the value",
    )
    value = models.TextField(help_text="Value of the configuration setting")
    description = models.TextField(
        blank=True, help_text="Optional description of the configuration setting"
    )

    def __str__(self):
        return self.key

    def clean(self):
        if self.data_type == Configuration.DataType.JSON:
            try:
                json.loads(self.value)
            except ValueError as exc:
                raise ValidationError({"value": f"Invalid JSON: {exc}"}) from exc

    def get_value(self):
        if self.data_type == Configuration.DataType.NUMBER:
            try:
                return int(self.value)
            except ValueError:
                try:
                    return float(self.value)
                except ValueError:
                    return 0
        elif self.data_type == Configuration.DataType.BOOLEAN:
            return self.value.lower() == "true"
        elif self.data_type == Configuration.DataType.JSON:
            return json.loads(self.value)
        else:
            # DataType.TEXT or an unknown type, so just return the value itself
            return self.value
