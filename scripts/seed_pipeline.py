"""Seed the lead pipeline with its default columns and a few demo leads."""

import argparse

from dotenv import load_dotenv

from crm_pipeline.db import SessionLocal, get_engine
from crm_pipeline.schemas.pipeline import LeadCreate, LeadMove
from crm_pipeline.services.pipeline import load_canonical, pipeline_leads
from crm_pipeline.services.pipeline.store import SqlPipelineStore

DEMO_LEADS = [
    ("New Leads", {"name": "Alice Johnson", "company": "TechCorp", "email": "alice@techcorp.com", "value": "5000.00"}),
    ("Contacted", {"name": "Bob Smith", "company": "Retail Co", "email": "bob@retail.example", "value": "R$ 1.200,00"}),
    ("Proposal Sent", {"name": "Carla Souza", "company": "Souza ME", "email": "carla@souza.example", "value": "8.500,00"}),
    ("Won", {"name": "Diego Lima", "company": "Lima Ltda", "email": "diego@lima.example", "value": "12000"}),
    ("Lost", {"name": "Eva Rocha", "company": None, "email": "eva@rocha.example", "value": None}),
]


def parse_args():
    parser = argparse.ArgumentParser(description="Seed the pipeline with default columns and demo leads.")
    parser.add_argument("--tenant-id", default=None, help="Tenant stamped on new rows (default: shared workspace)")
    parser.add_argument("--dry-run", action="store_true", help="Print the leads without inserting them")
    return parser.parse_args()


def seed_leads(db, tenant_id: str | None = None, dry_run: bool = False) -> int:
    """Insert demo leads, each into the column named for it."""
    store = SqlPipelineStore(db, tenant_id=tenant_id)
    canonical = load_canonical(store)
    created = 0
    for title, fields in DEMO_LEADS:
        target = canonical.by_title(title) or canonical.first()
        if dry_run:
            print(f"Would create {fields['name']} in {target.title}")
            continue
        lead = pipeline_leads.create(store, LeadCreate(**fields))
        pipeline_leads.move(store, str(lead.id), LeadMove(stage_id=target.id, position=0))
        print(f"  Created {fields['name']} in {target.title}")
        created += 1
    return created


def main():
    load_dotenv()
    args = parse_args()

    db = SessionLocal(bind=get_engine())
    try:
        created = seed_leads(db, tenant_id=args.tenant_id, dry_run=args.dry_run)
    finally:
        db.close()
    print(f"Seeded {created} leads.")


if __name__ == "__main__":
    main()
