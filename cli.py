#!/usr/bin/env python3
"""
CLI tool for curation dashboard maintenance and offline evidence review
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from lib.domain_summary import parse_domain_summary
from lib.evidence_analysis import (
    DEFAULT_COVERAGE_THRESHOLD,
    DEFAULT_MIN_ALIGNMENT_LENGTH,
    analyze_protein_evidence,
)
from lib.ranges import parse_range
from lib.types import PipelineDomain, SyncIssue


def analyze_summary(args) -> int:
    """Parse a domain summary XML and report hit coverage against given domains"""
    xml_text = Path(args.xml).read_text()
    summary = parse_domain_summary(xml_text, args.sequence_length, args.protein_id or "")

    domains = []
    for i, text in enumerate(args.domain or [], start=1):
        segments = parse_range(text)
        domains.append(
            PipelineDomain(id=i, domain_number=i, start=segments[0].start, end=segments[-1].end, range=text)
        )

    result = analyze_protein_evidence(summary, domains, args.coverage_threshold, args.min_alignment_length)

    if args.json:
        print(json.dumps(result, indent=2, default=str))
        return 0

    counts = result["summary"]["hit_counts"]
    print(f"Domain summary for {args.protein_id or args.xml}")
    print("=" * 50)
    for name, count in counts.items():
        print(f"   {name}: {count}")

    print(f"\nEvidence metrics:")
    for name, value in result["metrics"].items():
        print(f"   {name}: {value}")

    if domains:
        print(f"\nDomain traceability:")
        for trace in result["traceability"]:
            breakdown = trace["confidence_breakdown"]
            print(
                f"   Domain {trace['domain_id']} ({trace['domain_range']}): "
                f"{breakdown['evidence_count']} hits, "
                f"boundary confidence {breakdown['boundary_confidence']:.2f}"
            )
            for issue in trace["potential_issues"]:
                print(f"      ! {issue}")
    return 0


def extract_domain_cmd(args) -> int:
    from api.services.domain_extractor import DomainInfo, extract_domain

    segments = parse_range(args.range)
    text = extract_domain(Path(args.mmcif).read_text(), args.chain, segments, args.format)
    if text is None:
        print(f"No atoms for chain {args.chain} in {args.range}")
        return 1

    info = DomainInfo.from_segments(Path(args.mmcif).stem, args.chain, segments)
    if args.output:
        Path(args.output).write_text(text)
        print(f"Wrote {info.total_residues} residues to {args.output}")
    else:
        sys.stdout.write(text)
    return 0


def cleanup(args) -> int:
    from ecod_pg.db_lib_curation import curation_store

    result = curation_store.cleanup(stale_hours=args.stale_hours)
    print(f"Released {result['deleted_locks']} expired locks")
    print(f"Abandoned {result['abandoned_sessions']} stale sessions")
    return 0


def health(args) -> int:
    from ecod_pg.db_lib_audit import db_auditor

    batches = db_auditor.batch_health_check()
    out_of_sync = [b for b in batches if b["sync_issue"] != SyncIssue.OK.value]

    print(f"Batch health: {len(batches)} batches, {len(out_of_sync)} with issues")
    print("=" * 50)
    for b in batches:
        print(
            f"   {b.get('batch_name') or b.get('id')}: {b['sync_issue']} "
            f"(expected {b.get('expected_items')}, partitioned {b.get('actual_proteins_in_partition')})"
        )
    return 1 if out_of_sync and args.strict else 0


def main():
    parser = argparse.ArgumentParser(description="ECOD curation dashboard tools")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("analyze-summary", help="Coverage analysis of a domain summary XML")
    p.add_argument("xml", help="Path to the domain summary XML")
    p.add_argument("--sequence-length", "-l", type=int, required=True)
    p.add_argument("--protein-id", "-p", help="Source id, e.g. 5c3l_B")
    p.add_argument("--domain", "-d", action="append", help="Pipeline domain range (repeatable)")
    p.add_argument("--coverage-threshold", type=float, default=DEFAULT_COVERAGE_THRESHOLD)
    p.add_argument("--min-alignment-length", type=int, default=DEFAULT_MIN_ALIGNMENT_LENGTH)
    p.add_argument("--json", action="store_true", help="Print the full analysis as JSON")
    p.set_defaults(func=analyze_summary)

    p = sub.add_parser("extract-domain", help="Cut a domain out of a local mmCIF file")
    p.add_argument("mmcif", help="Path to the mmCIF file")
    p.add_argument("chain", help="Author chain id")
    p.add_argument("range", help="Residue range, e.g. A:25-150 or 11-76,80-100")
    p.add_argument("--format", "-f", choices=["pdb", "mmcif"], default="pdb")
    p.add_argument("--output", "-o", help="Output file (default stdout)")
    p.set_defaults(func=extract_domain_cmd)

    p = sub.add_parser("cleanup", help="Release expired locks and abandon stale sessions")
    p.add_argument("--stale-hours", type=int, default=None)
    p.set_defaults(func=cleanup)

    p = sub.add_parser("health", help="Batch sync report")
    p.add_argument("--strict", action="store_true", help="Exit non-zero when any batch is out of sync")
    p.set_defaults(func=health)

    args = parser.parse_args()

    try:
        sys.exit(args.func(args))
    except (ValueError, OSError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
