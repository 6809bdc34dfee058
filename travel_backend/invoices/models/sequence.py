# invoices/models/sequence.py

from django.db import models


class InvoiceSequence(models.Model):
    """
    Per-year counter behind INV-<year>-<00001>. Incremented under a row lock.
    """

    year = models.PositiveIntegerField(unique=True)
    last_number = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.year}: {self.last_number}"
