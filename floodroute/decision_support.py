"""
Decision Support Module – Road risk counts and route situation reports.
"""

import json
import os

import networkx as nx

import config
from floodroute.risk_model import RiskLevel, RouteRiskAnalysis, risk_level_for
from floodroute.route_risk import route_advisories, select_safer_route


def count_affected_roads(G: nx.MultiDiGraph) -> dict:
    """Count annotated road edges by risk level of their `flood_risk`."""
    counts = {level.name.lower(): 0 for level in RiskLevel}
    for _, _, d in G.edges(data=True):
        counts[risk_level_for(d.get("flood_risk", 0.0)).name.lower()] += 1
    counts["total_segments"] = G.number_of_edges()
    return counts


def generate_route_report(
    analysis: RouteRiskAnalysis,
    alternative: RouteRiskAnalysis = None,
    road_stats: dict = None,
    params: dict = None,
    out_dir: str = None,
) -> dict:
    """
    Build a structured route report (JSON) with a plain-text summary and
    save it under out_dir (config.OUTPUT_DIR by default).
    """
    report = {
        "title": "Flood Route Risk Report",
        "parameters": params or {},
        "route": analysis.to_dict(),
        "advisories": route_advisories(analysis),
        "road_analysis": road_stats or {},
    }

    lines = [
        "═══ ROUTE RISK REPORT ═══",
        "",
        f"Distance:        {analysis.total_distance / 1000:.2f} km",
        f"Estimated time:  {analysis.estimated_time / 60:.1f} min",
        f"Overall risk:    {analysis.overall_risk:.3f}",
        f"Max risk:        {analysis.max_risk:.3f}",
        f"Average risk:    {analysis.average_risk:.3f}",
        f"Warning segments: {len(analysis.high_risk_segments)}",
        f"Recommended:     {'yes' if analysis.is_recommended else 'NO'}",
    ]

    if road_stats:
        lines += ["", f"Road segments: {road_stats.get('total_segments', 0)}"]
        lines += [
            f"  {level.display_name + ':':<15}{road_stats[level.name.lower()]}"
            for level in reversed(RiskLevel)
            if level.name.lower() in road_stats
        ]

    if alternative is not None:
        safer = select_safer_route(analysis, alternative)
        report["alternative"] = alternative.to_dict()
        report["safer_route"] = "route" if safer is analysis else "alternative"
        lines += [
            "",
            f"Alternative overall risk: {alternative.overall_risk:.3f}",
            f"Safer choice: {report['safer_route']}",
        ]

    lines += [""] + [f"• {a}" for a in report["advisories"]]
    report["summary_text"] = "\n".join(lines)

    out_dir = out_dir or config.OUTPUT_DIR
    os.makedirs(out_dir, exist_ok=True)
    out_path = os.path.join(out_dir, config.ROUTE_REPORT_JSON)
    with open(out_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
    print(f"[DSS] Report saved → {out_path}")
    report["path"] = out_path
    return report
