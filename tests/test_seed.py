import pytest
from sqlmodel import Session
from csr_portal import models
from csr_portal.database import engine
from csr_portal.seed import apply_branding, seed_demo


def test_seed_refuses_to_run_twice():
    with Session(engine) as session:
        with pytest.raises(ValueError):
            seed_demo(session)


def test_apply_branding_reports_missing_partners():
    with Session(engine) as session:
        missing = apply_branding(session, [
            {'name': 'Tata Mumbai Marathon', 'website': 'https://www.tcs.com', 'primary_color': None},
            {'name': 'Nobody Ltd', 'website': 'nobody.example'},
        ])
        assert missing == ['Nobody Ltd']
        partner = session.get(models.CSRPartner, 'partner-tmm')
        assert partner.website == 'https://www.tcs.com'
        # None values leave the stored colour alone
        assert partner.primary_color == '#1a1a1a'
