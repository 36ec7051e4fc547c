"""
Jerarquía de errores del pipeline de conversión.

- ConfigurationError: La traducción declarada es inválida. Se lanza antes de
  escribir cualquier documento en MongoDB.
- SchemaGenerationError: No se pudo ubicar el path de un embed en el schema padre.
- PersistenceError: Falló un insert/update. Lleva los documentos del batch
  como payload de diagnóstico.
"""


class ConversionError(Exception):
    """Clase base de todos los errores del conversor."""


class ConfigurationError(ConversionError):
    """Configuración de traducción inválida (fatal, previa a cualquier escritura)."""


class UnsupportedTypeError(ConfigurationError):
    """Tipo de columna PostgreSQL sin converter registrado."""

    def __init__(self, data_type, udt_name=None):
        self.data_type = data_type
        self.udt_name = udt_name
        super().__init__(
            f"Tipo no soportado: '{data_type}' (udt: {udt_name}). "
            f"Definir un converter para la columna."
        )


class EmbedConfigurationError(ConfigurationError):
    """Embed mal declarado (sin colección destino, sin columna de join, etc.)."""


class TranslatorConfigurationError(ConfigurationError):
    """Translator sin la combinación requerida de query/projection/processor."""


class CircularDependencyError(ConfigurationError):
    """
    Dependencia circular entre unidades de conversión.

    Attributes:
        cycle (list): Cadena de nombres desde la raíz del ciclo hasta el
                      nombre repetido (ej: ['a', 'b', 'a'])
    """

    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(
            f"Dependencia circular: {' -> '.join(self.cycle)}"
        )


class SchemaGenerationError(ConversionError):
    """No se pudo insertar el sub-schema de un embed en el schema padre."""


class PersistenceError(ConversionError):
    """
    Error al persistir un batch en MongoDB.

    Attributes:
        documents (list): Documentos del batch que se intentaba persistir
        collection (str): Colección destino
    """

    def __init__(self, message, documents=None, collection=None):
        self.documents = documents or []
        self.collection = collection
        super().__init__(message)
