"""SISFO Akademik backend package.

Two HTTP services share this package: admission (periods, applications,
documents, registration events) and attendance (student marks, teacher
check-in/out). Each feature module keeps a thin Flask controller on top of
service/repository layers.
"""
