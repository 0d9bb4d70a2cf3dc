"""
Loader para exportar variables y su uso a Neo4j en batches.
"""
import logging
from typing import Dict, Iterable, List

from neo4j import GraphDatabase

from config import Config
from .schema import GraphSchema
from ..model.values import AliasValue
from ..model.variable import Collection, Variable
from ..usage.usage_index import UsageIndex
from ..utils.logger import setup_logger
from ..utils.serialization import prepare_batch_for_neo4j


class Neo4jLoader:
    """Cargador de variables, colecciones y componentes con batch processing."""

    def __init__(
        self,
        uri: str = None,
        user: str = None,
        password: str = None,
        batch_size: int = None,
        driver=None,
        verbose: bool = False,
        log_level: int = logging.WARNING
    ):
        """
        Inicializa la conexión a Neo4j.

        Args:
            uri: URI de Neo4j
            user: Usuario
            password: Contraseña
            batch_size: Items por transacción
            driver: Driver ya construido (tests)
            verbose: Imprimir progreso por batch
            log_level: Nivel de logging (por defecto WARNING para no interferir con rich)
        """
        self.uri = uri or Config.NEO4J_URI
        self.user = user or Config.NEO4J_USER
        self.password = password or Config.NEO4J_PASSWORD
        self.batch_size = batch_size or Config.BATCH_SIZE
        self.verbose = verbose

        self.driver = driver or GraphDatabase.driver(self.uri, auth=(self.user, self.password))
        self.schema = GraphSchema()

        self.logger = setup_logger(__name__, level=log_level)

        # Métricas de operación
        self.metrics = {
            "items_loaded": 0,
            "errors": 0,
            "batches_processed": 0
        }

    def close(self):
        """Cierra la conexión."""
        if self.driver:
            self.driver.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def setup_schema(self):
        """Configura constraints e índices."""
        with self.driver.session() as session:
            for query in self.schema.get_constraints():
                try:
                    session.run(query)
                except Exception as e:
                    self.logger.warning(f"Error creando constraint: {e}")

    def clear_graph(self):
        """Elimina los nodos de variables, colecciones y componentes."""
        with self.driver.session() as session:
            for query in self.schema.get_cleanup_queries():
                session.run(query)

    def load_collections(self, collections: Iterable[Collection]) -> Dict[str, int]:
        """
        Carga colecciones con sus modos.

        Args:
            collections: Colecciones del documento
        """
        data = prepare_batch_for_neo4j([
            {"id": c.id, "name": c.name, "modes": [m.to_dict() for m in c.modes]}
            for c in collections
        ])
        query = f"""
        UNWIND $collections AS collection
        MERGE (c:{self.schema.NODE_COLLECTION} {{id: collection.id}})
        SET c.name = collection.name,
            c.modes = collection.modes
        """
        return self._batch_execute(query, data, "collections", "colecciones")

    def load_variables(self, variables: Iterable[Variable]) -> Dict[str, int]:
        """
        Carga variables, su pertenencia a colección y sus alias.

        Los valores por modo se guardan como JSON (Neo4j no admite mapas
        anidados).

        Args:
            variables: Variables de un snapshot
        """
        variables = [v for v in variables if v.id]

        data = prepare_batch_for_neo4j([
            {
                "id": v.id,
                "name": v.name,
                "type": v.type.value,
                "description": v.description,
                "collection_id": v.collection_id,
                "collection_name": v.collection_name,
                "values_by_mode": v.to_dict()["valuesByMode"],
            }
            for v in variables
        ])
        query = f"""
        UNWIND $variables AS variable
        MERGE (v:{self.schema.NODE_VARIABLE} {{id: variable.id}})
        SET v.name = variable.name,
            v.type = variable.type,
            v.description = variable.description,
            v.values_by_mode = variable.values_by_mode
        MERGE (c:{self.schema.NODE_COLLECTION} {{id: variable.collection_id}})
        ON CREATE SET c.name = variable.collection_name
        MERGE (v)-[:{self.schema.REL_IN_COLLECTION}]->(c)
        """
        result = self._batch_execute(query, data, "variables", "variables")

        aliases = []
        for variable in variables:
            for mode_id, value in variable.values_by_mode.items():
                if isinstance(value, AliasValue):
                    aliases.append({"from": variable.id, "to": value.target_id, "mode": mode_id})

        if aliases:
            alias_query = f"""
            UNWIND $aliases AS alias
            MATCH (v:{self.schema.NODE_VARIABLE} {{id: alias.from}})
            MERGE (t:{self.schema.NODE_VARIABLE} {{id: alias.to}})
            MERGE (v)-[r:{self.schema.REL_ALIASES} {{mode: alias.mode}}]->(t)
            """
            self._batch_execute(alias_query, aliases, "aliases", "alias")

        return result

    def load_usage_index(self, index: UsageIndex) -> Dict[str, int]:
        """
        Carga componentes y relaciones USED_BY desde el índice de uso.

        Args:
            index: Índice de uso de un escaneo
        """
        usages = []
        for identity in index.identities():
            for entry in index.entries_for(identity):
                usages.append({
                    "variable": identity,
                    "component": entry.component_name,
                    "is_unbound": entry.component_name == index.unbound_label,
                    "node_ids": list(entry.node_ids),
                    "node_count": len(entry.node_ids),
                })

        query = f"""
        UNWIND $usages AS usage
        MERGE (v:{self.schema.NODE_VARIABLE} {{id: usage.variable}})
        MERGE (c:{self.schema.NODE_COMPONENT} {{name: usage.component}})
        SET c.is_unbound = usage.is_unbound
        MERGE (v)-[r:{self.schema.REL_USED_BY}]->(c)
        SET r.node_ids = usage.node_ids,
            r.node_count = usage.node_count
        """
        return self._batch_execute(query, prepare_batch_for_neo4j(usages), "usages", "usos")

    def _batch_execute(
        self,
        query: str,
        data: List[Dict],
        param_name: str,
        description: str = "items"
    ) -> Dict[str, int]:
        """
        Ejecuta una query en batches, con commit por batch para evitar
        transacciones demasiado grandes. Un batch fallido no detiene al resto.

        Args:
            query: Query Cypher
            data: Datos a procesar
            param_name: Nombre del parámetro en la query
            description: Descripción para logs y progreso

        Returns:
            Diccionario con métricas de la operación
        """
        if not data:
            return {"processed": 0, "errors": 0}

        total_items = len(data)
        total_batches = (total_items + self.batch_size - 1) // self.batch_size
        errors = 0
        processed = 0

        self.logger.info(f"Cargando {description}: {total_items} items en {total_batches} batches")

        with self.driver.session() as session:
            for batch_num, i in enumerate(range(0, total_items, self.batch_size), 1):
                batch = data[i : i + self.batch_size]

                try:
                    with session.begin_transaction() as tx:
                        tx.run(query, {param_name: batch})
                        tx.commit()
                    processed += len(batch)
                    self.metrics["batches_processed"] += 1
                    self.metrics["items_loaded"] += len(batch)

                except Exception as e:
                    errors += len(batch)
                    self.metrics["errors"] += 1
                    self.logger.error(
                        f"Error en batch {batch_num}/{total_batches} de {description}: {str(e)}"
                    )
                    continue

                if self.verbose:
                    print(f"    {description}: {batch_num}/{total_batches} batches")

        if errors > 0:
            self.logger.warning(f"{description}: {errors} errores de {total_items} items")

        return {"processed": processed, "errors": errors}

    def get_stats(self) -> Dict:
        """
        Obtiene estadísticas del grafo.

        Returns:
            Diccionario con conteos por etiqueta y relaciones de uso
        """
        queries = {
            "variables": f"MATCH (n:{self.schema.NODE_VARIABLE}) RETURN count(n) as count",
            "collections": f"MATCH (n:{self.schema.NODE_COLLECTION}) RETURN count(n) as count",
            "components": f"MATCH (n:{self.schema.NODE_COMPONENT}) RETURN count(n) as count",
            "usages": f"MATCH ()-[r:{self.schema.REL_USED_BY}]->() RETURN count(r) as count",
        }
        try:
            with self.driver.session() as session:
                # Queries separadas para evitar producto cartesiano
                return {
                    key: session.run(query).single()["count"]
                    for key, query in queries.items()
                }
        except Exception as e:
            self.logger.warning(f"No se pudieron obtener estadísticas: {e}")
            return {key: 0 for key in queries}
