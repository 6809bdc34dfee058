# accounting/management/commands/seed_travel_chart.py

from datetime import date

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from accounting.models.account import ChartOfAccount
from accounting.models.period import FiscalYear
from accounting.services.account_mapping import set_mapping
from accounting.services.chart_registry import register_account
from accounting.services.period_lock import create_fiscal_year

A = ChartOfAccount.ASSET
L = ChartOfAccount.LIABILITY
E = ChartOfAccount.EQUITY
R = ChartOfAccount.REVENUE
X = ChartOfAccount.EXPENSE

# (code, name, type, parent_code, is_header)
TRAVEL_ACCOUNTS = [
    ("1", "ASET", A, None, True),
    ("1-1", "Kas dan Bank", A, "1", True),
    ("1-1-01", "Kas Kecil", A, "1-1", False),
    ("1-1-02", "Bank BCA", A, "1-1", False),
    ("1-1-03", "Bank Mandiri", A, "1-1", False),
    ("1-1-04", "Kas Kliring", A, "1-1", False),
    ("1-2", "Piutang Usaha", A, "1", True),
    ("1-2-01", "Piutang B2B", A, "1-2", False),
    ("2", "KEWAJIBAN", L, None, True),
    ("2-1", "Hutang Usaha", L, "2", True),
    ("2-1-01", "Hutang Vendor Hotel", L, "2-1", False),
    ("2-1-02", "Hutang Vendor Bus", L, "2-1", False),
    ("2-2", "Hutang Gaji", L, "2", False),
    ("2-3", "Titipan Pelanggan", L, "2", False),
    ("3", "EKUITAS", E, None, True),
    ("3-1", "Modal", E, "3", False),
    ("4", "PENDAPATAN", R, None, True),
    ("4-1", "Pendapatan Hotel", R, "4", False),
    ("4-2", "Pendapatan Visa", R, "4", False),
    ("4-3", "Pendapatan Tiket", R, "4", False),
    ("4-4", "Pendapatan Bus", R, "4", False),
    ("4-5", "Pendapatan Handling", R, "4", False),
    ("5", "BEBAN", X, None, True),
    ("5-1", "HPP Hotel", X, "5", False),
    ("5-2", "HPP Visa", X, "5", False),
    ("5-3", "HPP Tiket", X, "5", False),
    ("5-4", "HPP Bus", X, "5", False),
    ("5-5", "Beban Gaji", X, "5", False),
]

# (category, debit_code, credit_code, description)
TRAVEL_MAPPINGS = [
    ("sales_hotel", "1-2-01", "4-1", "Penjualan Hotel"),
    ("sales_visa", "1-2-01", "4-2", "Penjualan Visa"),
    ("sales_ticket", "1-2-01", "4-3", "Penjualan Tiket"),
    ("sales_bus", "1-2-01", "4-4", "Penjualan Bus"),
    ("sales_handling", "1-2-01", "4-5", "Penjualan Handling"),
    ("purchase_hotel", "5-1", "2-1-01", "Pembelian Hotel"),
    ("purchase_bus", "5-4", "2-1-02", "Pembelian Bus"),
    ("payroll", "5-5", "2-2", "Penggajian"),
    ("cash_receipt", "1-1-01", "1-2-01", "Penerimaan Kas"),
    ("cash_disbursement", "2-1-01", "1-1-01", "Pengeluaran Kas"),
    ("bank_transfer", "1-1-02", "1-1-01", "Transfer Bank"),
    ("overpayment_transfer", "1-1-04", "2-3", "Kelebihan bayar dialihkan"),
    ("overpayment_refund", "1-1-04", "1-1-01", "Pengembalian kelebihan bayar"),
]


class Command(BaseCommand):
    help = "Seed the travel chart of accounts, default account mappings and the current fiscal year"

    def add_arguments(self, parser):
        parser.add_argument(
            "--year",
            type=int,
            default=None,
            help="Calendar year to open as a fiscal year (default: current year).",
        )
        parser.add_argument(
            "--skip-fiscal-year",
            action="store_true",
            help="Only seed accounts and mappings.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding travel chart of accounts...")

        created_count = 0
        for sort_order, (code, name, account_type, parent, is_header) in enumerate(
            TRAVEL_ACCOUNTS
        ):
            _, created = register_account(
                code=code,
                name=name,
                account_type=account_type,
                parent_code=parent,
                is_header=is_header,
                sort_order=sort_order,
            )
            created_count += int(created)
        self.stdout.write(
            f"Accounts: {created_count} created, {len(TRAVEL_ACCOUNTS) - created_count} updated"
        )

        for category, debit, credit, description in TRAVEL_MAPPINGS:
            set_mapping(
                category=category,
                debit_code=debit,
                credit_code=credit,
                description=description,
            )
        self.stdout.write(f"Mappings: {len(TRAVEL_MAPPINGS)} ensured")

        if options["skip_fiscal_year"]:
            self.stdout.write(self.style.SUCCESS("Done (fiscal year skipped)"))
            return

        year = options["year"] or timezone.localdate().year
        code = f"FY{year}"
        if FiscalYear.objects.filter(code=code).exists():
            self.stdout.write(f"Fiscal year {code} already exists")
        else:
            create_fiscal_year(
                code=code,
                name=f"Tahun Buku {year}",
                start_date=date(year, 1, 1),
                created_by="system",
            )
            self.stdout.write(f"Fiscal year {code} created with 12 periods")

        self.stdout.write(self.style.SUCCESS("Travel chart seeded"))
