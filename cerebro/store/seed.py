"""Demo seed data: KB articles and past tickets, loaded in a fixed order."""

from typing import TypedDict


class KBArticleSeed(TypedDict):
    title: str
    application: str
    problem: str
    cause: str
    solution: str
    steps: list[str]


class TicketSeed(TypedDict):
    user_id: str
    user_name: str
    application: str
    description: str
    error_code: str | None
    status: str
    severity: str


KB_ARTICLES: list[KBArticleSeed] = [
    {
        "title": "Daily Sales Report fails with Error 1203",
        "application": "Sales App",
        "problem": "Cannot generate daily sales report",
        "cause": "Yesterday's data sync is incomplete",
        "solution": "Force a manual data sync to complete the missing data",
        "steps": [
            "Go to Admin → Sync Status",
            "Tap Force Sync",
            "Wait 1 minute and retry generating the report",
        ],
    },
    {
        "title": "Payroll summary blank - missing period settings",
        "application": "Payroll App",
        "problem": "Payroll summary isn't loading or shows blank",
        "cause": "The payroll period hasn't been created yet",
        "solution": "Create the missing payroll period",
        "steps": [
            "Go to Payroll Settings",
            "Click Create Period",
            "Choose the appropriate month/year",
            "Save and refresh the summary",
        ],
    },
    {
        "title": "Data import fails - CSV encoding issue",
        "application": "Data Import",
        "problem": "CSV import keeps failing",
        "cause": "CSV file is not UTF-8 encoded",
        "solution": "Convert the file to UTF-8 encoding",
        "steps": [
            "Open your CSV in a text editor",
            "Save As and select UTF-8 encoding",
            "Retry the import with the converted file",
        ],
    },
    {
        "title": "Invoice Approval Timeout after deployment",
        "application": "Finance App",
        "problem": "Invoice approval fails with APPROVAL_SERVICE_TIMEOUT",
        "cause": "Misconfigured database connection after deployment",
        "solution": "Verify and fix the connection string configuration",
        "steps": [
            "Check approval-service configuration",
            "Verify approval-db connection string",
            "Restart the service if needed",
        ],
    },
    {
        "title": "Employee Import Guide",
        "application": "HR App",
        "problem": "How to import employees from CSV file",
        "cause": "User needs guidance on importing employee data",
        "solution": "Follow the employee import process step by step",
        "steps": [
            "Go to HR → Employees",
            "Click Import Employees",
            "Download the Template CSV",
            "Fill it in with employee data (name, email, department, start date)",
            "Upload the completed CSV file",
            "Review the preview and confirm import",
        ],
    },
    {
        "title": "Operations Dashboard - No Data Showing",
        "application": "Operations Dashboard",
        "problem": "Dashboard shows no data or blank charts",
        "cause": "ETL job failure or data pipeline issue",
        "solution": "Check ETL job status and data source configuration",
        "steps": [
            "Go to Admin → Data Pipeline Status",
            "Check recent ETL job logs",
            "Verify data source connection settings",
            "Retry the ETL job if it failed",
            "Contact data team if issue persists",
        ],
    },
    {
        "title": "Session Timeout on Mobile Devices",
        "application": "Inventory App",
        "problem": "Getting logged out frequently on mobile",
        "cause": "Session timeout configuration issue for mobile clients",
        "solution": "Update session timeout settings for mobile app",
        "steps": [
            "Contact IT Support to update session timeout",
            "Clear app cache and data",
            "Log out and log back in",
            "Verify the issue is resolved",
        ],
    },
]

# Past tickets used for "similar issue" lookups. They take numbers 48201-48204.
DEMO_TICKETS: list[TicketSeed] = [
    {
        "user_id": "user-demo-1",
        "user_name": "Jane Smith",
        "application": "Inventory App",
        "description": "System logged me out 3 times in 10 minutes on Android",
        "error_code": "SESSION_TIMEOUT",
        "status": "resolved",
        "severity": "medium",
    },
    {
        "user_id": "user-demo-2",
        "user_name": "Bob Johnson",
        "application": "Payroll App",
        "description": "Payroll summary blank - missing period settings",
        "error_code": None,
        "status": "resolved",
        "severity": "low",
    },
    {
        "user_id": "user-demo-3",
        "user_name": "Alice Wong",
        "application": "Payroll App",
        "description": "Payroll summary stuck loading - client cache issue",
        "error_code": None,
        "status": "resolved",
        "severity": "low",
    },
    {
        "user_id": "user-demo-4",
        "user_name": "Carlos Martinez",
        "application": "Payroll App",
        "description": "Payroll summary error 503 - server outage",
        "error_code": None,
        "status": "resolved",
        "severity": "high",
    },
]
