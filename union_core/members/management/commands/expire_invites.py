# union_core/members/management/commands/expire_invites.py

from django.core.management.base import BaseCommand

from union_core.members.services import InviteService


class Command(BaseCommand):
    help = "Mark overdue PENDING member invites as EXPIRED (idempotent)."

    def handle(self, *args, **options):
        n = InviteService.expire_overdue()
        self.stdout.write(self.style.SUCCESS(f"Invites expired: {n}"))
