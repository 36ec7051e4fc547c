"""
Suite de tests para el conversor PostgreSQL → MongoDB.

Los tests NO se conectan a bases reales, solo validan:
- Sintaxis de código Python
- Configuración y cache de metadata
- Tipos, dependencias y generación de schemas
- Procesamiento por batches sobre fakes en memoria (tests/helpers.py)
"""
