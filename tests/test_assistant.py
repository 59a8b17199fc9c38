from decimal import Decimal
from types import SimpleNamespace

import pytest
import requests

import assistant


class FakeResponse:

    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def json(self):
        return self._payload


def _completion(content):
    return {'choices': [{'message': {'role': 'assistant', 'content': content}}]}


@pytest.fixture
def groq(monkeypatch):
    calls = []

    def install(result):
        def fake_post(url, json=None, headers=None, timeout=None):
            calls.append({'url': url, 'json': json, 'headers': headers, 'timeout': timeout})
            if isinstance(result, Exception):
                raise result
            return result

        monkeypatch.setattr(assistant.requests, 'post', fake_post)
        return calls

    return install


def test_reply_is_returned(client, seller_client, groq):
    seller_client.post('/api/products', json={'name': 'VPN Panel', 'price': '499', 'category': 'panels'})
    calls = groq(FakeResponse(_completion('Try MCG-001, the VPN Panel.')))

    response = client.post('/api/ai-chat', json={'message': 'Which panel should I buy?'})

    assert response.status_code == 200
    assert response.get_json() == {'response': 'Try MCG-001, the VPN Panel.'}
    sent = calls[0]['json']
    assert sent['model'] == 'llama3-8b-8192'
    assert sent['messages'][1] == {'role': 'user', 'content': 'Which panel should I buy?'}
    assert 'MCG-001' in sent['messages'][0]['content']
    assert calls[0]['headers']['Authorization'] == 'Bearer test-groq-key'
    assert calls[0]['timeout'] > 0


def test_message_is_required(client, groq):
    calls = groq(FakeResponse(_completion('unused')))

    response = client.post('/api/ai-chat', json={})

    assert response.status_code == 400
    assert response.get_json()['response'] == 'Message is required'
    assert calls == []


def test_transport_error_falls_back(client, groq):
    groq(requests.ConnectionError('connection refused'))

    response = client.post('/api/ai-chat', json={'message': 'hello'})

    assert response.status_code == 502
    assert response.get_json() == {'response': assistant.FALLBACK_REPLY}


def test_http_error_falls_back(client, groq):
    groq(FakeResponse({'error': 'rate limited'}, status_code=429))

    response = client.post('/api/ai-chat', json={'message': 'hello'})

    assert response.status_code == 502


def test_malformed_payload_falls_back(client, groq):
    groq(FakeResponse({'choices': []}))

    response = client.post('/api/ai-chat', json={'message': 'hello'})

    assert response.status_code == 502


def test_empty_completion_asks_to_rephrase(client, groq):
    groq(FakeResponse(_completion('   ')))

    response = client.post('/api/ai-chat', json={'message': 'hello'})

    assert response.status_code == 200
    assert response.get_json() == {'response': assistant.REPHRASE_REPLY}


def test_missing_api_key_falls_back(app, client, groq, monkeypatch):
    calls = groq(FakeResponse(_completion('unused')))
    monkeypatch.setitem(app.config, 'GROQ_API_KEY', None)

    response = client.post('/api/ai-chat', json={'message': 'hello'})

    assert response.status_code == 502
    assert calls == []


def test_system_prompt_lists_catalogue():
    products = [
        SimpleNamespace(product_id='MCG-001', name='VPN Panel', category='panels', currency='INR',
                        price=Decimal('499.00'), description=None),
        SimpleNamespace(product_id='MCB-001', name='Music Bot', category='bots', currency='INR',
                        price=Decimal('99.50'), description='24/7 music'),
    ]
    videos = [SimpleNamespace(title='Setup guide', category='tutorials', youtube_url='https://youtu.be/x')]

    prompt = assistant.build_system_prompt(products, videos)

    assert 'MCG-001: VPN Panel | category panels | price INR 499.00' in prompt
    assert '- bots: MCB-001' in prompt
    assert 'Setup guide | category tutorials' in prompt


def test_system_prompt_with_empty_catalogue():
    prompt = assistant.build_system_prompt([], [])

    assert '- none available right now' in prompt
