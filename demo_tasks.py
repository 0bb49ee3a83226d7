"""
Demo Tasks Data for the Task Tracker
Assignees are referenced by email; "start" marks tasks the assignee has already begun
"""

from datetime import date, timedelta

DEMO_TASKS = [
    {
        "title": "Frontend UI Components",
        "description": "Create reusable UI components for the website dashboard",
        "assignees": ["vathsal@example.com"],
        "due_date": date.today() + timedelta(days=5),
        "start": True,
    },
    {
        "title": "Backend API Development",
        "description": "Develop REST APIs for user authentication and data management",
        "assignees": ["nagasri@example.com"],
        "due_date": date.today() + timedelta(days=7),
        "start": False,
    },
    {
        "title": "Database Schema Design",
        "description": "Design and implement the database schema for the application",
        "assignees": ["sravan@example.com", "nagasri@example.com"],
        "due_date": date.today() + timedelta(days=3),
        "start": True,
    },
    {
        "title": "Responsive Design Implementation",
        "description": "Ensure the website works seamlessly across all devices",
        "assignees": ["lavanya@example.com"],
        "due_date": date.today() + timedelta(days=10),
        "start": False,
    },
]
