"""
Exportación del grafo de uso de variables a Neo4j.
"""
from .neo4j_loader import Neo4jLoader
from .schema import GraphSchema

__all__ = ["Neo4jLoader", "GraphSchema"]
