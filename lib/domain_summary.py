# lib/domain_summary.py
"""
Parser for the pipeline's domain summary XML files.

A summary bundles the chain BLAST, domain BLAST and HHSearch hits that the
partitioner saw for one protein chain. Two HHSearch layouts occur in the wild
(``hh_hit_list/hh_hit`` and ``hh_run/hits/hit``); both are read here.
"""

import xml.etree.ElementTree as ET
from typing import List, Optional

from loguru import logger

from lib.errors import DomainSummaryParseError
from lib.ranges import first_range
from lib.types import DomainSummary, EvidenceHit, EvidenceType, SummaryMetadata


def _text(node: Optional[ET.Element], path: str) -> Optional[str]:
    if node is None:
        return None
    child = node.find(path)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def _float(value: Optional[str], default: Optional[float] = None) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _int(value: Optional[str], default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


class DomainSummaryParser:
    """
    Usage:
        parser = DomainSummaryParser(sequence_length=245, protein_id="5c3l_B")
        summary = parser.parse(xml_text)
    """

    def __init__(self, sequence_length: int, protein_id: str = ""):
        self.sequence_length = sequence_length
        self.protein_id = protein_id

    def parse(self, xml_text: str) -> DomainSummary:
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise DomainSummaryParseError(f"XML parsing error: {e}") from e

        summary = DomainSummary(
            protein_id=self.protein_id,
            sequence_length=self.sequence_length,
            metadata=self._metadata(root),
            chain_blast_hits=self._chain_blast_hits(root),
            domain_blast_hits=self._domain_blast_hits(root),
            hhsearch_hits=self._hhsearch_hits(root),
        )
        logger.debug(f"Parsed domain summary for {self.protein_id}: {summary.counts()}")
        return summary

    # ---------------------------------------------------------------------
    # Metadata
    # ---------------------------------------------------------------------

    def _metadata(self, root: ET.Element) -> SummaryMetadata:
        meta = root if root.tag == "metadata" else root.find(".//metadata")
        if meta is not None:
            return SummaryMetadata(
                pdb_id=_text(meta, "pdb_id") or "",
                chain_id=_text(meta, "chain_id") or "",
                reference=_text(meta, "reference") or "",
                creation_date=_text(meta, "creation_date"),
                min_probability=_float(_text(meta, "min_probability"), 0.0),
            )

        summ = root if root.tag == "blast_summ" else root.find(".//blast_summ")
        if summ is not None:
            return SummaryMetadata(
                pdb_id=summ.get("pdb", ""),
                chain_id=summ.get("chain", ""),
                reference=summ.get("reference", ""),
            )

        pdb_id, _, chain_id = self.protein_id.partition("_")
        return SummaryMetadata(pdb_id=pdb_id, chain_id=chain_id, reference="unknown")

    # ---------------------------------------------------------------------
    # Hits
    # ---------------------------------------------------------------------

    def _coverage(self, q_start: int, q_end: int, h_start: int, h_end: int, ref_length=None):
        query_len = q_end - q_start + 1
        hit_len = h_end - h_start + 1
        return {
            "query_coverage": query_len / self.sequence_length if self.sequence_length else 0.0,
            "hit_coverage": hit_len / ref_length if ref_length else 1.0,
            "alignment_length": query_len,
        }

    def _ranges(self, query_reg: Optional[str], hit_reg: Optional[str]):
        if not query_reg or not hit_reg:
            return None
        q = first_range(query_reg)
        h = first_range(hit_reg)
        if q is None or h is None:
            return None
        return q, h

    def _chain_blast_hits(self, root: ET.Element) -> List[EvidenceHit]:
        hits = []
        for i, hit in enumerate(root.iterfind(".//chain_blast_run/hits/hit")):
            query_reg, hit_reg = _text(hit, "query_reg"), _text(hit, "hit_reg")
            ranges = self._ranges(query_reg, hit_reg)
            if ranges is None:
                continue
            (qs, qe), (hs, he) = ranges
            pdb_id, chain_id = hit.get("pdb_id", ""), hit.get("chain_id", "")
            hits.append(
                EvidenceHit(
                    id=f"chain_blast_{i}",
                    type=EvidenceType.CHAIN_BLAST,
                    hit_id=f"{pdb_id}_{chain_id}",
                    num=_int(hit.get("num"), 0),
                    pdb_id=pdb_id,
                    chain_id=chain_id,
                    hsp_count=_int(hit.get("hsp_count"), 1),
                    evalue=_float(hit.get("evalues"), 1.0),
                    query_range=query_reg,
                    hit_range=hit_reg,
                    query_start=qs, query_end=qe,
                    hit_start=hs, hit_end=he,
                    **self._coverage(qs, qe, hs, he),
                )
            )
        return hits

    def _domain_blast_hits(self, root: ET.Element) -> List[EvidenceHit]:
        hits = []
        for i, hit in enumerate(root.iterfind(".//blast_run[@program='blastp']/hits/hit")):
            domain_id = hit.get("domain_id")
            if not domain_id:
                continue
            query_reg, hit_reg = _text(hit, "query_reg"), _text(hit, "hit_reg")
            ranges = self._ranges(query_reg, hit_reg)
            if ranges is None:
                continue
            (qs, qe), (hs, he) = ranges
            hits.append(
                EvidenceHit(
                    id=f"domain_blast_{i}",
                    type=EvidenceType.DOMAIN_BLAST,
                    hit_id=domain_id,
                    domain_id=domain_id,
                    pdb_id=hit.get("pdb_id", ""),
                    chain_id=hit.get("chain_id", ""),
                    hsp_count=_int(hit.get("hsp_count"), 1),
                    evalue=_float(hit.get("evalues"), 1.0),
                    query_range=query_reg,
                    hit_range=hit_reg,
                    query_start=qs, query_end=qe,
                    hit_start=hs, hit_end=he,
                    **self._coverage(qs, qe, hs, he),
                )
            )
        return hits

    def _hhsearch_hits(self, root: ET.Element) -> List[EvidenceHit]:
        hits = []
        nodes = list(root.iterfind(".//hh_hit_list/hh_hit")) + list(
            root.iterfind(".//hh_run/hits/hit")
        )
        for i, hit in enumerate(nodes):
            query_ali = template_ali = None
            if hit.tag == "hh_hit":
                query_reg = _text(hit, "query_range")
                hit_reg = _text(hit, "template_seqid_range")
                query_ali = _text(hit, "alignment/query_ali")
                template_ali = _text(hit, "alignment/template_ali")
            else:
                query_reg, hit_reg = _text(hit, "query_reg"), _text(hit, "hit_reg")

            ranges = self._ranges(query_reg, hit_reg)
            if ranges is None:
                continue
            (qs, qe), (hs, he) = ranges

            identity = similarity = None
            template_range = hit.find("template_seqid_range")
            if template_range is not None:
                identity = _float(template_range.get("identity"), 0.0)
                similarity = _float(template_range.get("similarity"), 0.0)

            hit_id = hit.get("hit_id") or hit.get("domain_id") or ""
            hits.append(
                EvidenceHit(
                    id=f"hhsearch_{i}",
                    type=EvidenceType.HHSEARCH,
                    hit_id=hit_id,
                    num=_int(hit.get("hit_num") or hit.get("num"), 0),
                    domain_id=hit.get("ecod_domain_id"),
                    probability=_float(hit.get("probability"), 0.0),
                    evalue=_float(hit.get("e_value") or hit.get("evalue"), 1.0),
                    score=_float(hit.get("score"), 0.0),
                    identity=identity,
                    similarity=similarity,
                    query_range=query_reg,
                    hit_range=hit_reg,
                    query_start=qs, query_end=qe,
                    hit_start=hs, hit_end=he,
                    query_alignment=query_ali,
                    template_alignment=template_ali,
                    **self._coverage(qs, qe, hs, he),
                )
            )
        return hits


def parse_domain_summary(xml_text: str, sequence_length: int, protein_id: str = "") -> DomainSummary:
    return DomainSummaryParser(sequence_length, protein_id).parse(xml_text)
