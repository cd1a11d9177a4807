"""AcademicHub - hybrid search over academic projects, tasks and documents."""

__version__ = "0.1.0"
