INQUIRY = {'name': 'Asha', 'email': 'asha@mail.com', 'message': 'Do you ship bots worldwide?'}


def test_anyone_can_send_a_message(client):
    response = client.post('/api/contact-messages', json=INQUIRY)

    assert response.status_code == 201
    body = response.get_json()
    assert body['is_read'] is False
    assert body['email'] == 'asha@mail.com'


def test_message_is_validated(client):
    response = client.post('/api/contact-messages', json={'name': 'Asha', 'email': 'not-an-email'})

    assert response.status_code == 400
    assert {'email', 'message'} <= set(response.get_json()['errors'])


def test_listing_requires_session(client, seller_client):
    client.post('/api/contact-messages', json=INQUIRY)
    client.post('/api/contact-messages', json=dict(INQUIRY, name='Vikram'))

    assert client.get('/api/contact-messages').status_code == 401
    names = [m['name'] for m in seller_client.get('/api/contact-messages').get_json()]
    assert names == ['Vikram', 'Asha']


def test_mark_read_is_one_way(client, seller_client):
    created = client.post('/api/contact-messages', json=INQUIRY).get_json()
    url = f"/api/contact-messages/{created['id']}/read"

    assert client.patch(url).status_code == 401
    assert seller_client.patch(url).status_code == 204
    assert seller_client.patch(url).status_code == 204

    messages = seller_client.get('/api/contact-messages').get_json()
    assert messages[0]['is_read'] is True


def test_mark_unknown_message(seller_client):
    assert seller_client.patch('/api/contact-messages/404/read').status_code == 404
