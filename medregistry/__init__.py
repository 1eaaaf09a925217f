"""MedRegistry - permissioned registry of doctors, patients and medicines."""

__version__ = "1.0.0"
