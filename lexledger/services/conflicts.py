"""
Conflict-of-interest checking.

Candidate names and companies are compared against every party, client and
case in the firm. A stored value matches a candidate when, after
normalization, either string contains the other. Matching deliberately favors
false positives: a missed conflict is an ethics problem, a spurious hit costs a
few minutes of review.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..models import Case, Client, ConflictCheck, ConflictParty, ConflictWaiver
from ..utils import get_pagination, normalize_name, parse_date
from .base import atomic

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 500


def _as_list(values, field: str) -> List[str]:
    """A string or a list of strings, as a list."""
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    if not isinstance(values, (list, tuple)) or not all(isinstance(v, str) for v in values):
        raise ValidationError(f"{field} must be a string or a list of strings", field=field)
    return list(values)


def _terms_match(term: str, value: str, min_length: int, bidirectional: bool = True) -> bool:
    """Substring match between two already-normalized strings."""
    if not value or len(value) < min_length:
        return False
    if term in value:
        return True
    return bidirectional and value in term


class ConflictMatcher:
    """Matches normalized candidates against stored names. Holds no state between checks."""

    def __init__(self, candidates: Iterable[str], min_term_length: int = 2):
        self.min_term_length = min_term_length
        self.candidates = []
        for raw in candidates:
            term = normalize_name(raw)
            if len(term) >= min_term_length and term not in self.candidates:
                self.candidates.append(term)

    def match(self, fields: Dict[str, Iterable[str]], substring_only=()) -> Dict[str, List[str]]:
        """
        Return {candidate: [field names]} for every candidate hitting a field.

        `fields` maps a field label to one or more raw values. Labels listed in
        `substring_only` (e.g. email) only match when the value contains the
        candidate.
        """
        hits: Dict[str, List[str]] = {}
        for label, values in fields.items():
            if isinstance(values, str) or values is None:
                values = [values]
            normalized = [normalize_name(v) for v in values if v]
            for term in self.candidates:
                for value in normalized:
                    if _terms_match(term, value, self.min_term_length,
                                    bidirectional=label not in substring_only):
                        fields_hit = hits.setdefault(term, [])
                        if label not in fields_hit:
                            fields_hit.append(label)
                        break
        return hits


class ConflictService:
    """Runs conflict checks and manages the parties database and waivers."""

    def __init__(self, session, min_term_length: int = 2):
        self.session = session
        self.min_term_length = min_term_length

    # ------------------------------------------------------------------ checks

    def run_check(self, names, companies=None, check_type: str = 'new_matter',
                  client_id: Optional[str] = None, case_id: Optional[str] = None,
                  user_id: Optional[str] = None) -> ConflictCheck:
        """Screen names/companies firm-wide and persist a new ConflictCheck."""
        names = [n.strip() for n in _as_list(names, 'names') if n.strip()]
        companies = [c.strip() for c in _as_list(companies, 'companies') if c.strip()]

        name_matcher = ConflictMatcher(names, self.min_term_length)
        if not names:
            raise ValidationError('At least one name is required', field='names')
        if not name_matcher.candidates:
            raise ValidationError(
                f"Names must be at least {self.min_term_length} characters long", field='names')

        check_type = check_type or 'new_matter'
        if check_type not in ConflictCheck.CHECK_TYPES:
            raise ValidationError(
                f"check_type must be one of {', '.join(ConflictCheck.CHECK_TYPES)}",
                field='check_type')

        # Scope is recorded for audit only; it never narrows the search.
        if client_id and self.session.get(Client, client_id) is None:
            raise NotFoundError('Client not found', client_id=client_id)
        if case_id and self.session.get(Case, case_id) is None:
            raise NotFoundError('Case not found', case_id=case_id)

        matcher = ConflictMatcher(names + companies, self.min_term_length)
        results = self.find_matches(matcher)
        status = ConflictCheck.STATUS_CONFLICT_FOUND if results else ConflictCheck.STATUS_CLEAR

        check = ConflictCheck(
            user_id=user_id,
            check_type=check_type,
            search_terms={'names': names, 'companies': companies},
            status=status,
            results=results,
            conflict_count=len(results),
            checked_by=user_id,
            client_id=client_id,
            case_id=case_id,
        )
        with atomic(self.session):
            self.session.add(check)

        logger.info("Conflict check %s (%s): %s, %d match(es)",
                    check.id, check_type, status, check.conflict_count)
        return check

    def find_matches(self, matcher: ConflictMatcher) -> List[dict]:
        """Scan parties, clients and case opponents; one entry per distinct entity."""
        results: Dict[tuple, dict] = {}

        def record(source, entity_id, name, hits, **extra):
            key = (source, entity_id)
            entry = results.get(key)
            if entry is None:
                entry = {'source': source, 'id': entity_id, 'name': name,
                         'matched_terms': [], 'matched_fields': []}
                entry.update(extra)
                results[key] = entry
            for term, fields_hit in hits.items():
                if term not in entry['matched_terms']:
                    entry['matched_terms'].append(term)
                for f in fields_hit:
                    if f not in entry['matched_fields']:
                        entry['matched_fields'].append(f)

        parties = self.session.query(ConflictParty).order_by(ConflictParty.created_at)
        for party in parties.yield_per(SCAN_BATCH_SIZE):
            hits = matcher.match({
                'name': party.name,
                'company': party.company,
                'alias': party.aliases or [],
                'email': party.email,
            }, substring_only=('email',))
            if hits:
                record('party', party.id, party.name, hits,
                       party_type=party.party_type, relationship=party.relationship,
                       case_id=party.case_id, client_id=party.client_id)

        clients = self.session.query(Client).order_by(Client.created_at)
        for client in clients.yield_per(SCAN_BATCH_SIZE):
            hits = matcher.match({
                'name': [client.full_name, f"{client.last_name} {client.first_name}"],
                'company': client.company_name,
                'email': client.email,
            }, substring_only=('email',))
            if hits:
                record('client', client.id, client.full_name, hits,
                       company_name=client.company_name)

        cases = self.session.query(Case).filter(
            (Case.opposing_party.isnot(None)) | (Case.opposing_counsel.isnot(None))
        ).order_by(Case.created_at)
        for case in cases.yield_per(SCAN_BATCH_SIZE):
            hits = matcher.match({
                'opposing_party': case.opposing_party,
                'opposing_counsel': case.opposing_counsel,
            })
            if hits:
                record('case', case.id, case.title, hits,
                       case_number=case.case_number, client_id=case.client_id)

        return list(results.values())

    def get_check(self, check_id: str) -> ConflictCheck:
        check = self.session.get(ConflictCheck, check_id)
        if check is None:
            raise NotFoundError('Conflict check not found', check_id=check_id)
        return check

    def list_checks(self, page=1, per_page=20, status: Optional[str] = None) -> dict:
        """Check history, newest first."""
        paging = get_pagination(page, per_page)
        query = self.session.query(ConflictCheck)
        if status:
            query = query.filter(ConflictCheck.status == status)
        total = query.count()
        items = (
            query.order_by(ConflictCheck.created_at.desc())
            .offset((paging['page'] - 1) * paging['per_page'])
            .limit(paging['per_page'])
            .all()
        )
        return {'items': items, 'total': total, **paging}

    def stats(self) -> dict:
        counts = dict(
            self.session.query(ConflictCheck.status, func.count(ConflictCheck.id))
            .group_by(ConflictCheck.status)
            .all()
        )
        since = datetime.utcnow() - timedelta(days=30)
        recent = self.session.query(func.count(ConflictCheck.id)).filter(
            ConflictCheck.created_at >= since).scalar()
        return {
            'total_checks': sum(counts.values()),
            'clear_count': counts.get(ConflictCheck.STATUS_CLEAR, 0),
            'conflict_count': counts.get(ConflictCheck.STATUS_CONFLICT_FOUND, 0),
            'waived_count': counts.get(ConflictCheck.STATUS_WAIVED, 0),
            'recent_count': recent or 0,
            'party_count': self.session.query(func.count(ConflictParty.id)).scalar() or 0,
        }

    # ----------------------------------------------------------------- waivers

    def create_waiver(self, check_id: str, waiver_type: str = 'informed_consent',
                      parties_involved=None, waiver_text: Optional[str] = None,
                      obtained_from: Optional[str] = None, obtained_date=None) -> ConflictWaiver:
        """Record a waiver and move the parent check from conflict_found to waived."""
        waiver_type = waiver_type or 'informed_consent'
        if waiver_type not in ConflictWaiver.WAIVER_TYPES:
            raise ValidationError(
                f"waiver_type must be one of {', '.join(ConflictWaiver.WAIVER_TYPES)}",
                field='waiver_type')
        obtained_date = parse_date(obtained_date, field='obtained_date', default=date.today())
        if parties_involved is not None:
            parties_involved = _as_list(parties_involved, 'parties_involved')

        with atomic(self.session):
            check = (
                self.session.query(ConflictCheck)
                .filter(ConflictCheck.id == check_id)
                .with_for_update()
                .first()
            )
            if check is None:
                raise NotFoundError('Conflict check not found', check_id=check_id)
            if check.status != ConflictCheck.STATUS_CONFLICT_FOUND:
                raise InvalidStateError(
                    f"Cannot waive a conflict check with status '{check.status}'",
                    status=check.status)

            if parties_involved is None:
                parties_involved = [r.get('name') for r in (check.results or [])]
            waiver = ConflictWaiver(
                conflict_check_id=check.id,
                waiver_type=waiver_type,
                parties_involved=parties_involved,
                waiver_text=waiver_text,
                obtained_from=obtained_from,
                obtained_date=obtained_date,
            )
            self.session.add(waiver)
            check.status = ConflictCheck.STATUS_WAIVED

        logger.info("Conflict check %s waived (%s)", check_id, waiver_type)
        return waiver

    def list_waivers(self) -> List[ConflictWaiver]:
        return (
            self.session.query(ConflictWaiver)
            .order_by(ConflictWaiver.created_at.desc())
            .all()
        )

    # ----------------------------------------------------------------- parties

    def add_party(self, name: str, party_type: str, user_id: Optional[str] = None,
                  aliases=None, email=None, phone=None, company=None, address=None,
                  case_id=None, client_id=None, relationship=None, notes=None) -> ConflictParty:
        name = (name or '').strip()
        if not name:
            raise ValidationError('name is required', field='name')
        if party_type not in ConflictParty.PARTY_TYPES:
            raise ValidationError(
                f"party_type must be one of {', '.join(ConflictParty.PARTY_TYPES)}",
                field='party_type')
        if case_id and self.session.get(Case, case_id) is None:
            raise NotFoundError('Case not found', case_id=case_id)
        if client_id and self.session.get(Client, client_id) is None:
            raise NotFoundError('Client not found', client_id=client_id)

        party = ConflictParty(
            user_id=user_id,
            party_type=party_type,
            name=name,
            aliases=[a.strip() for a in _as_list(aliases, 'aliases') if a.strip()],
            email=email,
            phone=phone,
            company=company,
            address=address,
            case_id=case_id,
            client_id=client_id,
            relationship=relationship,
            notes=notes,
        )
        with atomic(self.session):
            self.session.add(party)
        return party

    def list_parties(self, search=None, party_type=None, relationship=None) -> List[ConflictParty]:
        query = self.session.query(ConflictParty)
        if search:
            query = query.filter(ConflictParty.name.ilike(f"%{search.strip()}%"))
        if party_type:
            query = query.filter(ConflictParty.party_type == party_type)
        if relationship:
            query = query.filter(ConflictParty.relationship == relationship)
        return query.order_by(ConflictParty.name.asc()).all()

    def delete_party(self, party_id: str) -> None:
        party = self.session.get(ConflictParty, party_id)
        if party is None:
            raise NotFoundError('Party not found', party_id=party_id)
        with atomic(self.session):
            self.session.delete(party)
        logger.info("Conflict party %s deleted", party_id)

    def extract_case_parties(self, case_id: str, user_id: Optional[str] = None) -> List[ConflictParty]:
        """Add a case's opposing party and opposing counsel to the parties database."""
        case = self.session.get(Case, case_id)
        if case is None:
            raise NotFoundError('Case not found', case_id=case_id)

        existing = {
            normalize_name(p.name)
            for p in self.session.query(ConflictParty).filter(ConflictParty.case_id == case.id)
        }
        candidates = [
            (case.opposing_party, 'opposing_party', 'opposing'),
            (case.opposing_counsel, 'individual', 'opposing_counsel'),
        ]
        added = []
        with atomic(self.session):
            for name, party_type, relationship in candidates:
                if not name or normalize_name(name) in existing:
                    continue
                party = ConflictParty(user_id=user_id, party_type=party_type, name=name.strip(),
                                      aliases=[], case_id=case.id, relationship=relationship)
                self.session.add(party)
                existing.add(normalize_name(name))
                added.append(party)
        return added
