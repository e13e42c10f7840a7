"""
Code graph store: code nodes, the edges between them and their links to memories.

The code indexer writes through ``upsert_node``/``add_edge``/``link_memory``;
the API only reads.
"""

import json
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from .dao import escape_like
from .db import Database, with_retry
from .errors import NotFoundError
from .schema import CodeGraphStats, CodeNode, CrossLayerRelation
from ..util.logging import logger

CODE_NODE_COLUMNS = """
    id, type, name, file_path, start_line, end_line,
    signature, summary, metadata, created_at, updated_at
"""


def _encode_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(metadata) if metadata is not None else None


class CodeGraphRepository:
    """Reads and indexer writes over ``code_nodes``, ``code_edges`` and ``cross_layer_relations``."""

    def __init__(self, database: Database, clock=time.time):
        self.database = database
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def list_nodes(
        self,
        type: Optional[str] = None,
        file: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[CodeNode], int]:
        """Filtered nodes ordered by name, plus the total matching count."""
        conditions = []
        values: List[Any] = []

        if type:
            conditions.append("type = ?")
            values.append(type)
        if file:
            conditions.append("file_path LIKE ? ESCAPE '\\'")
            values.append(f"%{escape_like(file)}%")
        if search:
            pattern = f"%{escape_like(search)}%"
            conditions.append(
                "(name LIKE ? ESCAPE '\\' OR signature LIKE ? ESCAPE '\\' OR summary LIKE ? ESCAPE '\\')"
            )
            values.extend([pattern, pattern, pattern])

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        def operation():
            with self.database.connect() as conn:
                total = conn.execute(f"SELECT COUNT(*) FROM code_nodes {where_clause}", values).fetchone()[0]
                rows = conn.execute(
                    f"""
                    SELECT {CODE_NODE_COLUMNS}
                    FROM code_nodes
                    {where_clause}
                    ORDER BY name ASC, id ASC
                    LIMIT ? OFFSET ?
                    """,
                    values + [limit, offset],
                ).fetchall()
                return rows, total

        rows, total = with_retry(operation)
        return [CodeNode.from_row(row) for row in rows], int(total)

    def get_node(self, node_id: str) -> CodeNode:
        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    f"SELECT {CODE_NODE_COLUMNS} FROM code_nodes WHERE id = ?", (node_id,)
                ).fetchone()

        row = with_retry(operation)
        if row is None:
            raise NotFoundError(f"Code node '{node_id}' not found")
        return CodeNode.from_row(row)

    def cross_layer_for_memory(self, memory_id: str) -> List[CrossLayerRelation]:
        """Code nodes linked to a memory, most confident first."""
        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    """
                    SELECT clr.*, cn.name AS code_name, cn.type AS code_type, cn.file_path, cn.signature
                    FROM cross_layer_relations clr
                    JOIN code_nodes cn ON cn.id = clr.code_node_id
                    WHERE clr.memory_id = ?
                    ORDER BY clr.confidence DESC, clr.id
                    """,
                    (memory_id,),
                ).fetchall()

        return [CrossLayerRelation.from_row(row) for row in with_retry(operation)]

    def memories_for_node(self, code_node_id: str) -> List[CrossLayerRelation]:
        """Memories linked to a code node, most confident first."""
        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    """
                    SELECT clr.*, m.title AS memory_title, m.type AS memory_type, m.summary AS memory_summary
                    FROM cross_layer_relations clr
                    JOIN memories m ON m.id = clr.memory_id
                    WHERE clr.code_node_id = ?
                    ORDER BY clr.confidence DESC, clr.id
                    """,
                    (code_node_id,),
                ).fetchall()

        return [CrossLayerRelation.from_row(row) for row in with_retry(operation)]

    def stats(self) -> CodeGraphStats:
        def operation():
            with self.database.connect() as conn:
                node_types = conn.execute("SELECT type, COUNT(*) AS count FROM code_nodes GROUP BY type").fetchall()
                edge_types = conn.execute(
                    "SELECT edge_type, COUNT(*) AS count FROM code_edges GROUP BY edge_type"
                ).fetchall()
                cross_layer = conn.execute("SELECT COUNT(*) FROM cross_layer_relations").fetchone()[0]
                return node_types, edge_types, cross_layer

        node_types, edge_types, cross_layer = with_retry(operation)
        nodes_by_type = {row["type"]: int(row["count"]) for row in node_types}
        edges_by_type = {row["edge_type"]: int(row["count"]) for row in edge_types}
        return CodeGraphStats(
            total_nodes=sum(nodes_by_type.values()),
            total_edges=sum(edges_by_type.values()),
            total_cross_layer_relations=int(cross_layer),
            nodes_by_type=nodes_by_type,
            edges_by_type=edges_by_type,
        )

    def upsert_node(
        self,
        id: str,
        type: str,
        name: str,
        file_path: str,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
        signature: Optional[str] = None,
        summary: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CodeNode:
        """Insert a node or refresh it in place, keeping its ``created_at``."""
        now = self._now()

        def operation():
            with self.database.connect() as conn:
                conn.execute(
                    f"""
                    INSERT INTO code_nodes ({CODE_NODE_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        type = excluded.type,
                        name = excluded.name,
                        file_path = excluded.file_path,
                        start_line = excluded.start_line,
                        end_line = excluded.end_line,
                        signature = excluded.signature,
                        summary = excluded.summary,
                        metadata = excluded.metadata,
                        updated_at = excluded.updated_at
                    """,
                    (
                        id, type, name, file_path, start_line, end_line,
                        signature, summary, _encode_metadata(metadata), now, now,
                    ),
                )
                conn.commit()

        with_retry(operation)
        return self.get_node(id)

    def add_edge(self, from_node: str, to_node: str, edge_type: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        edge_id = str(uuid.uuid4())
        now = self._now()

        def operation():
            with self.database.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO code_edges (id, from_node, to_node, edge_type, metadata, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (edge_id, from_node, to_node, edge_type, _encode_metadata(metadata), now),
                )
                conn.commit()

        with_retry(operation)
        return edge_id

    def link_memory(
        self,
        memory_id: str,
        code_node_id: str,
        relation_type: str,
        direction: str = "memory_to_code",
        confidence: float = 1.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        relation_id = str(uuid.uuid4())
        now = self._now()

        def operation():
            with self.database.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO cross_layer_relations
                        (id, memory_id, code_node_id, relation_type, direction, confidence, metadata, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        relation_id, memory_id, code_node_id, relation_type, direction,
                        float(confidence), _encode_metadata(metadata), now,
                    ),
                )
                conn.commit()

        with_retry(operation)
        logger.log_operation("code.link_memory", "success", {
            "memory_id": memory_id, "code_node_id": code_node_id, "relation_type": relation_type,
        })
        return relation_id
