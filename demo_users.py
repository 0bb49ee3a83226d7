"""
Demo team for the Task Tracker
One admin who reviews submissions and four members who do the work
"""

DEMO_USERS = [
    {"name": "Bhavana", "email": "bhavana@example.com", "password": "password123", "role": "admin"},
    {"name": "Vathsal", "email": "vathsal@example.com", "password": "password123", "role": "member"},
    {"name": "Nagasri", "email": "nagasri@example.com", "password": "password123", "role": "member"},
    {"name": "Sravan", "email": "sravan@example.com", "password": "password123", "role": "member"},
    {"name": "Lavanya", "email": "lavanya@example.com", "password": "password123", "role": "member"},
]
