import pytest

from lexledger.errors import InvalidStateError, NotFoundError, ValidationError
from lexledger.models import Case, Client, ConflictCheck, ConflictParty, ConflictWaiver, db
from lexledger.services import ConflictService
from lexledger.services.conflicts import ConflictMatcher


@pytest.fixture
def service(ctx):
    return ConflictService(db.session)


def add_party(name, party_type='opposing_party', **fields):
    party = ConflictParty(name=name, party_type=party_type, **fields)
    db.session.add(party)
    db.session.commit()
    return party


def add_client(first_name, last_name, **fields):
    client = Client(first_name=first_name, last_name=last_name, **fields)
    db.session.add(client)
    db.session.commit()
    return client


class TestConflictMatcher:
    def test_bidirectional_substring(self):
        matcher = ConflictMatcher(['Smith', 'John Smith Jr.'])
        hits = matcher.match({'name': 'John Smith'})
        assert hits == {'smith': ['name'], 'john smith jr.': ['name']}

    def test_substring_only_fields_do_not_match_in_reverse(self):
        matcher = ConflictMatcher(['billing@acme.com.au'])
        assert matcher.match({'email': 'acme.com'}, substring_only=('email',)) == {}
        assert matcher.match({'company': 'acme.com'}) == {'billing@acme.com.au': ['company']}

    def test_short_candidates_are_dropped(self):
        matcher = ConflictMatcher(['J', ' ', 'Jo', 'jo'])
        assert matcher.candidates == ['jo']

    def test_short_stored_values_never_match(self):
        matcher = ConflictMatcher(['Ann Brown'])
        assert matcher.match({'name': 'A'}) == {}


class TestRunCheck:
    def test_exact_party_name_is_a_conflict(self, service):
        add_party('John Smith')
        check = service.run_check(['John Smith'])
        assert check.status == ConflictCheck.STATUS_CONFLICT_FOUND
        assert check.conflict_count == 1
        assert check.results[0]['source'] == 'party'
        assert check.results[0]['name'] == 'John Smith'

    def test_no_match_is_clear(self, service):
        add_party('John Smith')
        check = service.run_check(['Maria Gonzalez'])
        assert check.status == ConflictCheck.STATUS_CLEAR
        assert check.conflict_count == 0
        assert check.results == []

    def test_match_ignores_case_and_spacing(self, service):
        add_party('John Smith')
        check = service.run_check(['  JOHN   smith '])
        assert check.conflict_count == 1
        assert check.search_terms == {'names': ['JOHN   smith'], 'companies': []}

    def test_partial_name_matches_both_ways(self, service):
        add_party('Acme Holdings International')
        assert service.run_check(['Acme Holdings']).conflict_count == 1
        add_party('Gregory Palmer')
        assert service.run_check(['Dr. Gregory Palmer III']).conflict_count == 1

    def test_alias_and_company_fields(self, service):
        add_party('Robert Jones', aliases=['Bobby Jones'], company='Jones Hauling LLC')
        check = service.run_check(['bobby jones'], companies=['Jones Hauling'])
        assert check.conflict_count == 1
        result = check.results[0]
        assert set(result['matched_fields']) == {'alias', 'company'}
        assert set(result['matched_terms']) == {'bobby jones', 'jones hauling'}

    def test_each_entity_counted_once(self, service):
        add_party('Linda Brown', aliases=['Linda Brown-Ellis'], email='linda.brown@example.org')
        check = service.run_check(['Linda Brown'])
        assert check.conflict_count == 1
        assert check.results[0]['matched_fields'] == ['name', 'alias']

    def test_clients_match_in_either_name_order(self, service):
        client = add_client('Jane', 'Doe', company_name='Doe Bakery')
        check = service.run_check(['Doe Jane'])
        assert check.conflict_count == 1
        assert check.results[0] == {
            'source': 'client',
            'id': client.id,
            'name': 'Jane Doe',
            'matched_terms': ['doe jane'],
            'matched_fields': ['name'],
            'company_name': 'Doe Bakery',
        }

    def test_case_opponents_are_scanned(self, service):
        client = add_client('Alice', 'Walker')
        case = Case(client_id=client.id, title='Walker v. Northwind',
                    opposing_party='Northwind Logistics', opposing_counsel='Sarah Kimura')
        db.session.add(case)
        db.session.commit()

        check = service.run_check(['Sarah Kimura'], companies=['Northwind'])
        assert check.conflict_count == 1
        result = check.results[0]
        assert result['source'] == 'case'
        assert result['id'] == case.id
        assert set(result['matched_fields']) == {'opposing_party', 'opposing_counsel'}

    def test_distinct_sources_count_separately(self, service):
        add_party('Victor Hale')
        add_client('Victor', 'Hale')
        check = service.run_check(['Victor Hale'])
        assert check.conflict_count == 2
        assert {r['source'] for r in check.results} == {'party', 'client'}

    def test_repeated_search_creates_independent_rows(self, service):
        add_party('John Smith')
        first = service.run_check(['John Smith'])
        second = service.run_check(['John Smith'])
        assert first.id != second.id
        assert ConflictCheck.query.count() == 2

    def test_scope_is_recorded_but_search_is_firm_wide(self, service):
        client = add_client('Alice', 'Walker')
        add_party('John Smith')
        check = service.run_check(['John Smith'], check_type='new_client', client_id=client.id)
        assert check.client_id == client.id
        assert check.check_type == 'new_client'
        assert check.conflict_count == 1

    @pytest.mark.parametrize('names', [None, [], [''], ['J'], 'x'])
    def test_requires_a_usable_name(self, service, names):
        with pytest.raises(ValidationError) as excinfo:
            service.run_check(names)
        assert excinfo.value.field == 'names'
        assert ConflictCheck.query.count() == 0

    def test_short_names_report_the_minimum_length(self, service):
        with pytest.raises(ValidationError) as excinfo:
            service.run_check(['J', ' K '])
        assert str(excinfo.value) == 'Names must be at least 2 characters long'

    @pytest.mark.parametrize('field, kwargs', [
        ('names', {'names': 5}),
        ('names', {'names': {'first': 'John'}}),
        ('companies', {'names': ['John Smith'], 'companies': ['Acme', None]}),
    ])
    def test_malformed_term_lists(self, service, field, kwargs):
        with pytest.raises(ValidationError) as excinfo:
            service.run_check(**kwargs)
        assert excinfo.value.field == field
        assert ConflictCheck.query.count() == 0

    def test_rejects_unknown_check_type(self, service):
        with pytest.raises(ValidationError):
            service.run_check(['John Smith'], check_type='lateral_hire')

    def test_unknown_scope_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.run_check(['John Smith'], client_id='missing')
        with pytest.raises(NotFoundError):
            service.run_check(['John Smith'], case_id='missing')


class TestWaivers:
    def test_waiver_on_clear_check_is_rejected(self, service):
        check = service.run_check(['Nobody Known'])
        with pytest.raises(InvalidStateError):
            service.create_waiver(check.id, waiver_text='Consent')
        assert ConflictWaiver.query.count() == 0
        assert service.get_check(check.id).status == ConflictCheck.STATUS_CLEAR

    def test_waiver_moves_check_to_waived(self, service):
        add_party('John Smith')
        check = service.run_check(['John Smith'])
        waiver = service.create_waiver(check.id, waiver_text='Client consents in writing',
                                       obtained_from='John Smith', obtained_date='2026-02-14')
        assert waiver.conflict_check_id == check.id
        assert waiver.parties_involved == ['John Smith']
        assert waiver.obtained_date.isoformat() == '2026-02-14'
        assert service.get_check(check.id).status == ConflictCheck.STATUS_WAIVED

    def test_waived_check_cannot_be_waived_again(self, service):
        add_party('John Smith')
        check = service.run_check(['John Smith'])
        service.create_waiver(check.id)
        with pytest.raises(InvalidStateError):
            service.create_waiver(check.id)
        assert ConflictWaiver.query.count() == 1

    def test_malformed_parties_involved(self, service):
        add_party('John Smith')
        check = service.run_check(['John Smith'])
        with pytest.raises(ValidationError) as excinfo:
            service.create_waiver(check.id, parties_involved=42)
        assert excinfo.value.field == 'parties_involved'
        assert service.get_check(check.id).status == ConflictCheck.STATUS_CONFLICT_FOUND

    def test_waiver_for_missing_check(self, service):
        with pytest.raises(NotFoundError):
            service.create_waiver('missing')

    def test_invalid_waiver_type(self, service):
        add_party('John Smith')
        check = service.run_check(['John Smith'])
        with pytest.raises(ValidationError):
            service.create_waiver(check.id, waiver_type='verbal')
        assert service.get_check(check.id).status == ConflictCheck.STATUS_CONFLICT_FOUND


class TestHistoryAndParties:
    def test_list_checks_filters_and_pages(self, service):
        add_party('John Smith')
        for _ in range(3):
            service.run_check(['John Smith'])
        service.run_check(['Nobody Known'])

        page = service.list_checks(page=1, per_page=2)
        assert page['total'] == 4
        assert len(page['items']) == 2
        found = service.list_checks(status=ConflictCheck.STATUS_CONFLICT_FOUND)
        assert found['total'] == 3

    def test_stats(self, service):
        add_party('John Smith')
        check = service.run_check(['John Smith'])
        service.run_check(['Nobody Known'])
        service.create_waiver(check.id)
        assert service.stats() == {
            'total_checks': 2,
            'clear_count': 1,
            'conflict_count': 0,
            'waived_count': 1,
            'recent_count': 2,
            'party_count': 1,
        }

    def test_add_party_validates(self, service):
        with pytest.raises(ValidationError):
            service.add_party('', 'individual')
        with pytest.raises(ValidationError):
            service.add_party('Someone', 'judge')
        with pytest.raises(ValidationError) as excinfo:
            service.add_party('Greta Lind', 'witness', aliases={'nick': 'G'})
        assert excinfo.value.field == 'aliases'
        party = service.add_party('  Greta Lind ', 'witness', aliases=['G. Lind', ''])
        assert party.name == 'Greta Lind'
        assert party.aliases == ['G. Lind']

    def test_list_and_delete_parties(self, service):
        keep = service.add_party('Greta Lind', 'witness')
        gone = service.add_party('Harold Finch', 'opposing_party', relationship='opposing')
        assert [p.name for p in service.list_parties(search='lind')] == ['Greta Lind']
        assert [p.id for p in service.list_parties(relationship='opposing')] == [gone.id]
        service.delete_party(gone.id)
        assert [p.id for p in service.list_parties()] == [keep.id]
        with pytest.raises(NotFoundError):
            service.delete_party(gone.id)

    def test_extract_case_parties_is_idempotent(self, service):
        client = add_client('Alice', 'Walker')
        case = Case(client_id=client.id, title='Walker v. Northwind',
                    opposing_party='Northwind Logistics', opposing_counsel='Sarah Kimura')
        db.session.add(case)
        db.session.commit()

        added = service.extract_case_parties(case.id)
        assert sorted(p.relationship for p in added) == ['opposing', 'opposing_counsel']
        assert service.extract_case_parties(case.id) == []
        assert ConflictParty.query.filter_by(case_id=case.id).count() == 2
