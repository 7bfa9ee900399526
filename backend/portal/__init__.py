"""Student portal backend: grades, enrollment, contact and user administration."""
