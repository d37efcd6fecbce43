import os
from datetime import date

from locust import HttpUser, task, between

class BackupOperator(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        # token from `itops-backups create-user`
        token = os.getenv("ITOPS_API_TOKEN", "")
        self.headers = {"Authorization": f"Bearer {token}"}

    @task(3)
    def view_today(self):
        self.client.get("/api/daily-backups/today", headers=self.headers)

    @task(2)
    def view_calendar(self):
        today = date.today()
        self.client.get(
            f"/api/daily-backups/calendar/{today.year}/{today.month}",
            name="/api/daily-backups/calendar/[year]/[month]",
            headers=self.headers,
        )

    @task(1)
    def toggle_file(self):
        self.client.patch("/api/daily-backups/today/file/backupZip", headers=self.headers)
