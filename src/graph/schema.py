"""
Definición del esquema del grafo de uso de variables en Neo4j.
"""


class GraphSchema:
    """Esquema del grafo variables -> componentes."""

    # ========================================================================
    # Node Labels
    # ========================================================================
    NODE_VARIABLE = "Variable"
    NODE_COLLECTION = "Collection"
    NODE_COMPONENT = "Component"

    # ========================================================================
    # Relationship Types
    # ========================================================================
    REL_IN_COLLECTION = "IN_COLLECTION"
    REL_USED_BY = "USED_BY"
    REL_ALIASES = "ALIASES"

    @classmethod
    def get_constraints(cls):
        """
        Retorna las constraints y índices para crear en Neo4j.

        Returns:
            Lista de queries Cypher para constraints
        """
        return [
            f"CREATE CONSTRAINT IF NOT EXISTS FOR (v:{cls.NODE_VARIABLE}) REQUIRE v.id IS UNIQUE",
            f"CREATE CONSTRAINT IF NOT EXISTS FOR (c:{cls.NODE_COLLECTION}) REQUIRE c.id IS UNIQUE",
            f"CREATE CONSTRAINT IF NOT EXISTS FOR (c:{cls.NODE_COMPONENT}) REQUIRE c.name IS UNIQUE",
            f"CREATE INDEX IF NOT EXISTS FOR (v:{cls.NODE_VARIABLE}) ON (v.name)",
            f"CREATE INDEX IF NOT EXISTS FOR (v:{cls.NODE_VARIABLE}) ON (v.type)",
        ]

    @classmethod
    def get_cleanup_queries(cls):
        """Queries para limpiar solo los nodos de este esquema."""
        return [
            f"MATCH (n:{label}) DETACH DELETE n"
            for label in (cls.NODE_VARIABLE, cls.NODE_COLLECTION, cls.NODE_COMPONENT)
        ]
