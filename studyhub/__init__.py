"""StudyHub tutoring backend."""
